"""Configuration for the device lab API."""

from pydantic import BaseModel, PositiveFloat, SecretStr


class LabAPIConfig(BaseModel):
    """Configuration for the device lab API.

    URLs are built as ``{scheme}://{host}{context_path}{path}`` so that the
    service can be hosted under a sub-path.
    """

    scheme: str = "https"
    host: str
    context_path: str = ""
    auth_token: SecretStr = SecretStr("")
    upload_path: str = "/api/package/add"
    run_test_path: str = "/api/test/task/run/"
    test_status_path: str = "/api/test/task/"
    portal_task_info_path: str = "/portal/index.html?redirectUrl=/info/task/"
    portal_device_video_path: str = "/portal/index.html?redirectUrl=/info/videos/"
    pkg_name: str = ""
    test_pkg_name: str = ""
    group_test_type: str = "SINGLE"
    running_type: str = ""
    framework_type: str = "JUnit4"
    # Connect and read timeout of each HTTP call, unrelated to the run timeout
    request_timeout: PositiveFloat = 60

    @property
    def base_url(self) -> str:
        """Service root including the context path."""
        return f"{self.scheme}://{self.host}{self.context_path}"

    def upload_url(self) -> str:
        """URL for uploading an artifact set."""
        return f"{self.base_url}{self.upload_path}"

    def run_test_url(self) -> str:
        """URL for requesting a test run."""
        return f"{self.base_url}{self.run_test_path}"

    def test_status_url(self, task_id: str) -> str:
        """URL for reading a test task snapshot."""
        return f"{self.base_url}{self.test_status_path}{task_id}"

    def test_report_url(self, task_id: str) -> str:
        """Portal URL of the full test task report."""
        return f"{self.base_url}{self.portal_task_info_path}{task_id}"

    def device_video_url(self, device_result_id: str) -> str:
        """Portal URL of the recording for one device result."""
        return f"{self.base_url}{self.portal_device_video_path}{device_result_id}"

    def static_resource_url(self, resource_path: str) -> str:
        """URL of a static resource served by the lab."""
        return f"{self.base_url}{resource_path}"
