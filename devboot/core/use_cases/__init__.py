"""Use cases — orchestration on top of the services."""
