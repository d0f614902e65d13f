"""Event decoding, chain reads, pricing and reserve accounting."""
