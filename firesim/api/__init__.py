"""FireSim API package."""
