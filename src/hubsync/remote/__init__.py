"""Remote object stores: the protocol, GitHub, and an in-process store."""
