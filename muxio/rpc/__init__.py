"""RPC types, stream codecs, sessions and the request dispatcher."""