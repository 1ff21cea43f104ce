"""
Wire schema — protobuf messages for the signed peer seed format, and
length-delimited framing.

The schema is equivalent to:

    message PeerSeedData {
        required string ip_address = 1;
        required uint32 port = 2;
        required uint32 services = 3;
    }
    message PeerSeeds {
        repeated PeerSeedData seed = 1;
        required int64 timestamp = 2;
        required string net = 3;
    }
    message SignedPeerSeeds {
        required bytes peer_seeds = 1;
        required bytes pubkey = 2;
        required bytes signature = 3;
    }

Depends on: nothing
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.internal.decoder import _DecodeVarint32
from google.protobuf.internal.encoder import _VarintBytes
from google.protobuf.message import DecodeError, Message

PACKAGE = "cartographer"

_Field = descriptor_pb2.FieldDescriptorProto


def _add_field(message, name: str, number: int, field_type: int,
               label: int = _Field.LABEL_REQUIRED, type_name: str = "") -> None:
    field = message.field.add(name=name, number=number, type=field_type, label=label)
    if type_name:
        field.type_name = type_name


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="cartographer/peerseeds.proto",
        package=PACKAGE,
        syntax="proto2",
    )

    seed = file_proto.message_type.add(name="PeerSeedData")
    _add_field(seed, "ip_address", 1, _Field.TYPE_STRING)
    _add_field(seed, "port", 2, _Field.TYPE_UINT32)
    _add_field(seed, "services", 3, _Field.TYPE_UINT32)

    seeds = file_proto.message_type.add(name="PeerSeeds")
    _add_field(seeds, "seed", 1, _Field.TYPE_MESSAGE,
               label=_Field.LABEL_REPEATED, type_name=f".{PACKAGE}.PeerSeedData")
    _add_field(seeds, "timestamp", 2, _Field.TYPE_INT64)
    _add_field(seeds, "net", 3, _Field.TYPE_STRING)

    signed = file_proto.message_type.add(name="SignedPeerSeeds")
    _add_field(signed, "peer_seeds", 1, _Field.TYPE_BYTES)
    _add_field(signed, "pubkey", 2, _Field.TYPE_BYTES)
    _add_field(signed, "signature", 3, _Field.TYPE_BYTES)

    return file_proto


# Private pool so the schema never collides with other protobuf users
_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str) -> type:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


PeerSeedData = _message_class("PeerSeedData")
PeerSeeds = _message_class("PeerSeeds")
SignedPeerSeeds = _message_class("SignedPeerSeeds")


# =============================================================================
# Framing
# =============================================================================

def write_delimited(message: Message) -> bytes:
    """Serialize message prefixed with its varint-encoded length."""
    body = message.SerializeToString()
    return _VarintBytes(len(body)) + body


def read_delimited(data: bytes, message_class: type) -> Message:
    """Parse one length-prefixed message from the start of data. Raises DecodeError."""
    if not data:
        raise DecodeError("empty input")
    try:
        length, pos = _DecodeVarint32(data, 0)
    except IndexError as e:
        raise DecodeError("truncated length prefix") from e
    body = data[pos:pos + length]
    if len(body) != length:
        raise DecodeError(f"truncated message: expected {length} bytes, got {len(body)}")
    message = message_class()
    message.ParseFromString(body)
    return message
