"""\
Канал команд на полевые устройства.

Команды публикуются в MQTT по принципу fire-and-forget: подтверждения от
устройства не ждём. Но если клиент не принял публикацию (нет соединения,
переполнена очередь), это жёсткая ошибка, и транзакция FLISR откатывается.
"""

import json
from typing import Protocol
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt
from loguru import logger

from flisr.errors import CommandDispatchError
from flisr.types import SwitchCommand


class CommandChannel(Protocol):
    def send_switch_command(self, command: SwitchCommand) -> None:
        ...


def switch_command_topic(prefix: str, connection_id: str) -> str:
    return f"{prefix.rstrip('/')}/connection/{connection_id}/switch/command"


def switch_command_payload(command: SwitchCommand) -> str:
    return json.dumps(
        {
            "command": command.command.value,
            "timestamp": command.timestamp.isoformat(),
            "source": command.source,
            "reason": command.reason or "",
        }
    )


class MqttCommandChannel:
    """Публикация команд коммутации через paho-mqtt."""

    def __init__(
        self,
        client: mqtt.Client,
        topic_prefix: str = "smart-grid",
        qos: int = 1,
        broker_url: str = "mqtt://localhost:1883",
        keepalive: int = 30,
    ):
        self._client = client
        self._topic_prefix = topic_prefix
        self._qos = qos
        self._broker_url = broker_url
        self._keepalive = keepalive

    @classmethod
    def from_settings(cls, settings) -> "MqttCommandChannel":
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=settings.MQTT_CLIENT_ID,
            clean_session=True,
        )
        if settings.MQTT_USERNAME:
            client.username_pw_set(settings.MQTT_USERNAME, settings.MQTT_PASSWORD or None)
        client.reconnect_delay_set(min_delay=1, max_delay=5)
        client.on_connect = _on_connect
        client.on_disconnect = _on_disconnect

        return cls(
            client,
            topic_prefix=settings.MQTT_TOPIC_PREFIX,
            qos=settings.MQTT_QOS,
            broker_url=settings.MQTT_BROKER_URL,
            keepalive=settings.MQTT_KEEPALIVE,
        )

    def start(self) -> None:
        """Асинхронное подключение к брокеру и запуск сетевого цикла в фоне."""
        parts = urlsplit(self._broker_url)
        host = parts.hostname or "localhost"
        port = parts.port or 1883
        self._client.connect_async(host, port, keepalive=self._keepalive)
        self._client.loop_start()
        logger.info(f"📡 MQTT command channel connecting to {host}:{port}")

    def stop(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
        logger.info("📡 MQTT command channel stopped")

    def send_switch_command(self, command: SwitchCommand) -> None:
        topic = switch_command_topic(self._topic_prefix, command.connection_id)

        # Без соединения paho кладёт QoS>0 сообщения в очередь и отправит их
        # после переподключения, уже после отката транзакции
        if not self._client.is_connected():
            raise CommandDispatchError(f"MQTT client is not connected, cannot publish to {topic}")

        info = self._client.publish(
            topic, switch_command_payload(command), qos=self._qos, retain=False
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise CommandDispatchError(
                f"Failed to publish to {topic}: {mqtt.error_string(info.rc)}"
            )
        logger.info(
            f"📤 Switch command {command.command.value} published to {topic} "
            f"(source={command.source})"
        )


def _on_connect(client, userdata, flags, reason_code, properties):
    if reason_code.is_failure:
        logger.error(f"❌ MQTT connection refused: {reason_code}")
    else:
        logger.info("✅ MQTT connected to broker")


def _on_disconnect(client, userdata, flags, reason_code, properties):
    logger.warning(f"⚠️ MQTT client disconnected: {reason_code}")
