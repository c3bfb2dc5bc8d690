from __future__ import annotations

from typing import Final

from pydantic import BaseModel, ConfigDict


class AzureEnvironment(BaseModel):
    """Named set of service endpoints for one Azure cloud."""

    model_config = ConfigDict(frozen=True)

    name: str
    active_directory_endpoint: str
    active_directory_service_endpoint_resource_id: str
    resource_manager_endpoint: str
    service_endpoint: str


AZURE_CLOUD: Final[AzureEnvironment] = AzureEnvironment(
    name="AzureCloud",
    active_directory_endpoint="https://login.microsoftonline.com/",
    active_directory_service_endpoint_resource_id="https://management.core.windows.net/",
    resource_manager_endpoint="https://management.azure.com/",
    service_endpoint="https://management.core.windows.net/",
)

AZURE_CHINA_CLOUD: Final[AzureEnvironment] = AzureEnvironment(
    name="AzureChinaCloud",
    active_directory_endpoint="https://login.chinacloudapi.cn/",
    active_directory_service_endpoint_resource_id="https://management.core.chinacloudapi.cn/",
    resource_manager_endpoint="https://management.chinacloudapi.cn/",
    service_endpoint="https://management.core.chinacloudapi.cn/",
)

AZURE_US_GOVERNMENT: Final[AzureEnvironment] = AzureEnvironment(
    name="AzureUSGovernment",
    active_directory_endpoint="https://login.microsoftonline.us/",
    active_directory_service_endpoint_resource_id="https://management.core.usgovcloudapi.net/",
    resource_manager_endpoint="https://management.usgovcloudapi.net/",
    service_endpoint="https://management.core.usgovcloudapi.net/",
)

KNOWN_ENVIRONMENTS: Final[dict[str, AzureEnvironment]] = {
    env.name: env for env in (AZURE_CLOUD, AZURE_CHINA_CLOUD, AZURE_US_GOVERNMENT)
}


def get_environment(name: str) -> AzureEnvironment:
    """Return a built-in environment by (case-insensitive) name.

    Raises:
        ValueError: If ``name`` is not a built-in environment.
    """
    for env_name, env in KNOWN_ENVIRONMENTS.items():
        if env_name.lower() == name.lower():
            return env
    raise ValueError(f"Unknown Azure environment: {name!r}")
