from .deployment_journal import DeploymentJournal

__all__ = ["DeploymentJournal"]
