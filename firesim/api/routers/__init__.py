"""API routers for FireSim."""
