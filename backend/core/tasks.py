from celery import shared_task

from .elections import ElectionRegistry


@shared_task(name="core.reconcile_election_phases")
def reconcile_election_phases():
    """Persist freshly resolved phases; scheduled by Celery beat."""
    return ElectionRegistry().reconcile_all()
