"""Location resolution for inbound social and news messages."""
