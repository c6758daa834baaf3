# src/streamsynth/connectors/kafka.py
"""
Source e Sink Kafka (aiokafka, extra `kafka`).

Config comum:
    - brokers (obrigatório): lista ou string separada por vírgulas
    - topic (obrigatório)
    - clientId, ssl (bool), sasl {mechanism, username, password}

Source:
    - groupId (default `streamsynth-group`), fromBeginning (default false)
    - cada mensagem com JSON válido vira um evento; objetos ganham o campo
      `_kafka` {topic, partition, offset, timestamp}
    - mensagem que não é JSON segue como string; tombstones são ignorados
    - `stop()` para o consumer e emite `end`

Sink:
    - compression (default gzip), acks (default 1)
    - strings seguem como estão; o resto vai como JSON sem `_kafka`
    - o producer sobe no primeiro `write`; `close()` o para
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Mapping, Optional

from streamsynth.core.exceptions import SourceError

from .base import Sink, Source

DEFAULT_CONSUMER_CLIENT_ID = "streamsynth-consumer"
DEFAULT_PRODUCER_CLIENT_ID = "streamsynth-producer"
DEFAULT_GROUP_ID = "streamsynth-group"
DEFAULT_COMPRESSION = "gzip"
DEFAULT_ACKS = 1
RETRY_DELAY_S = 1.0

METADATA_FIELD = "_kafka"

ClientFactory = Callable[..., Any]


def _brokers(config: Mapping[str, Any], role: str) -> List[str]:
    brokers = config.get("brokers")
    if isinstance(brokers, str):
        brokers = [b.strip() for b in brokers.split(",") if b.strip()]
    if not brokers or not isinstance(brokers, list):
        raise ValueError(f"Kafka {role} requires brokers configuration")
    return [str(b) for b in brokers]


def _topic(config: Mapping[str, Any], role: str) -> str:
    topic = config.get("topic")
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError(f"Kafka {role} requires a topic configuration")
    return topic


def _client_options(config: Mapping[str, Any], role: str, default_client_id: str) -> Dict[str, Any]:
    """kwargs comuns de AIOKafkaConsumer/AIOKafkaProducer a partir do config."""
    options: Dict[str, Any] = {
        "bootstrap_servers": _brokers(config, role),
        "client_id": str(config.get("clientId", default_client_id)),
    }
    ssl = bool(config.get("ssl", False))
    sasl = config.get("sasl")
    if sasl:
        if not isinstance(sasl, Mapping):
            raise ValueError(f"Kafka {role} 'sasl' must be an object")
        options["security_protocol"] = "SASL_SSL" if ssl else "SASL_PLAINTEXT"
        options["sasl_mechanism"] = str(sasl.get("mechanism", "PLAIN")).upper()
        options["sasl_plain_username"] = sasl.get("username")
        options["sasl_plain_password"] = sasl.get("password")
    elif ssl:
        options["security_protocol"] = "SSL"
    return options


def _aiokafka():
    try:
        import aiokafka
    except ImportError as e:
        raise RuntimeError(
            "Kafka connectors require aiokafka (pip install 'streamsynth[kafka]')"
        ) from e
    return aiokafka


def _with_ssl_context(options: Dict[str, Any]) -> Dict[str, Any]:
    if options.get("security_protocol") in ("SSL", "SASL_SSL"):
        from aiokafka.helpers import create_ssl_context

        options = dict(options, ssl_context=create_ssl_context())
    return options


def aiokafka_consumer(topic: str, **options: Any) -> Any:
    aiokafka = _aiokafka()
    return aiokafka.AIOKafkaConsumer(topic, **_with_ssl_context(options))


def aiokafka_producer(**options: Any) -> Any:
    aiokafka = _aiokafka()
    return aiokafka.AIOKafkaProducer(**_with_ssl_context(options))


def decode_message(message: Any) -> Any:
    """Valor da mensagem como evento; None para tombstones."""
    raw = message.value
    if raw is None:
        return None
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
    try:
        event = json.loads(text)
    except ValueError:
        return text
    if isinstance(event, dict):
        event[METADATA_FIELD] = {
            "topic": message.topic,
            "partition": message.partition,
            "offset": message.offset,
            "timestamp": message.timestamp,
        }
    return event


def encode_event(event: Any) -> bytes:
    if isinstance(event, str):
        return event.encode("utf-8")
    if isinstance(event, dict):
        event = {k: v for k, v in event.items() if k != METADATA_FIELD}
    return json.dumps(event, ensure_ascii=False).encode("utf-8")


class KafkaSource(Source):
    def __init__(
        self,
        topic: str,
        options: Dict[str, Any],
        consumer_factory: Optional[ClientFactory] = None,
        retry_delay_s: float = RETRY_DELAY_S,
    ) -> None:
        super().__init__()
        self.topic = topic
        self.options = options
        self.retry_delay_s = retry_delay_s
        self.consumer_factory: ClientFactory = consumer_factory or aiokafka_consumer
        self.consumer: Any = None

    async def start(self) -> None:
        if self.running:
            return
        consumer = self.consumer_factory(self.topic, **self.options)
        await consumer.start()
        self.consumer = consumer
        await super().start()

    async def _run(self) -> None:
        while self.running:
            try:
                message = await self.consumer.getone()
            except Exception as e:
                self.emit_error(
                    SourceError(
                        f"Kafka consume failed: {e}",
                        details={"topic": self.topic, "exception_class": e.__class__.__name__},
                        connector_type="kafka",
                    )
                )
                await asyncio.sleep(self.retry_delay_s)
                continue
            event = decode_message(message)
            if event is not None:
                self.emit_data(event)

    async def stop(self) -> None:
        was_running = self.running or self.consumer is not None
        await super().stop()
        consumer, self.consumer = self.consumer, None
        if consumer is not None:
            await consumer.stop()
        if was_running:
            self.emit_end()


class KafkaSink(Sink):
    def __init__(
        self,
        topic: str,
        options: Dict[str, Any],
        producer_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.topic = topic
        self.options = options
        self.producer_factory: ClientFactory = producer_factory or aiokafka_producer
        self.producer: Any = None

    async def write(self, event: Any) -> None:
        if self.producer is None:
            producer = self.producer_factory(**self.options)
            await producer.start()
            self.producer = producer
        await self.producer.send_and_wait(self.topic, encode_event(event))

    async def close(self) -> None:
        producer, self.producer = self.producer, None
        if producer is not None:
            await producer.stop()


def kafka_source(config: Mapping[str, Any]) -> KafkaSource:
    options = _client_options(config, "source", DEFAULT_CONSUMER_CLIENT_ID)
    options["group_id"] = str(config.get("groupId", DEFAULT_GROUP_ID))
    options["auto_offset_reset"] = "earliest" if config.get("fromBeginning", False) else "latest"
    return KafkaSource(_topic(config, "source"), options)


def kafka_sink(config: Mapping[str, Any]) -> KafkaSink:
    options = _client_options(config, "sink", DEFAULT_PRODUCER_CLIENT_ID)
    compression = config.get("compression", DEFAULT_COMPRESSION)
    options["compression_type"] = None if compression in (None, "none") else str(compression).lower()
    acks = config.get("acks", DEFAULT_ACKS)
    options["acks"] = "all" if acks in (-1, "all") else acks
    return KafkaSink(_topic(config, "sink"), options)
