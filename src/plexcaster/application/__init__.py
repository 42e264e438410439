"""Application layer: services orchestrating the domain and the ports."""
