"""Configuration, logging, clock and exceptions shared by the engine."""
