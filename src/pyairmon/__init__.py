"""pyairmon - Async panel indicator mirroring an air-quality monitor service."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyairmon")
except PackageNotFoundError:
    __version__ = "0+local"
from pyairmon._mqtt import MqttIpcClient, mqtt_client_factory, open_mqtt_client
from pyairmon.config import IndicatorConfig, IndicatorVariant, MqttSettings
from pyairmon.exceptions import (
    AirMonCallError,
    AirMonClientClosedError,
    AirMonConfigError,
    AirMonError,
    AirMonPayloadError,
    AirMonTransportError,
)
from pyairmon.indicator import (
    AirMonitorIndicator,
    MultiDeviceIndicator,
    Renderer,
    SingleDeviceIndicator,
    create_indicator,
)
from pyairmon.ipc import CallResult, IpcClient, PresenceAwareIpcClient, invoke
from pyairmon.models import (
    Device,
    MetricId,
    MetricLine,
    Placeholder,
    PresentationState,
    SectionHeader,
    SeverityBucket,
)
from pyairmon.state.connection import ConnectionState, ConnectionStatus
from pyairmon.state.store import RemoteSnapshot

__all__ = [
    "__version__",
    "AirMonCallError",
    "AirMonClientClosedError",
    "AirMonConfigError",
    "AirMonError",
    "AirMonPayloadError",
    "AirMonTransportError",
    "AirMonitorIndicator",
    "CallResult",
    "ConnectionState",
    "ConnectionStatus",
    "Device",
    "IndicatorConfig",
    "IndicatorVariant",
    "IpcClient",
    "MetricId",
    "MetricLine",
    "MqttIpcClient",
    "MqttSettings",
    "MultiDeviceIndicator",
    "Placeholder",
    "PresenceAwareIpcClient",
    "PresentationState",
    "RemoteSnapshot",
    "Renderer",
    "SectionHeader",
    "SeverityBucket",
    "SingleDeviceIndicator",
    "create_indicator",
    "invoke",
    "mqtt_client_factory",
    "open_mqtt_client",
]
