#SmileCare clinic API: storage façade, photo upload lifecycle and HTTP routers
__version__ = "1.0.0"
