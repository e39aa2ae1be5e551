"""Wire-format constants for frames and RPC headers."""

# Frame layout: length (u32) | stream id (u32) | seq id (u32) | kind (u8) | timestamp (u64)
FRAME_LENGTH_FIELD_SIZE = 4
FRAME_STREAM_ID_OFFSET = 4
FRAME_SEQ_ID_OFFSET = 8
FRAME_KIND_OFFSET = 12
FRAME_TIMESTAMP_OFFSET = 13
FRAME_HEADER_SIZE = 21

# RPC header layout: msg type (u8) | id (u32) | method id (u64) | metadata length (u16)
RPC_FRAME_MSG_TYPE_OFFSET = 0
RPC_FRAME_ID_OFFSET = 1
RPC_FRAME_METHOD_ID_OFFSET = 5
RPC_FRAME_METADATA_LENGTH_OFFSET = 13

RPC_FRAME_METHOD_ID_SIZE = 8
RPC_FRAME_METADATA_LENGTH_SIZE = 2

# Fixed-length prefix before the metadata section.
RPC_FRAME_FRAME_HEADER_SIZE = RPC_FRAME_METADATA_LENGTH_OFFSET + RPC_FRAME_METADATA_LENGTH_SIZE