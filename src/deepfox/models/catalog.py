"""
Read-only catalog of consultancy services and consultants.

The catalog is built once at startup and handed to the orchestrator, the
classifier prompt builder, and the console renderer.
"""
from typing import Dict, List, Optional, Sequence

from .schemas import Service, Consultant


class Catalog:
    """
    Immutable lookup over services and consultants.

    Services and consultants keep the order they were supplied in; that
    order is the display order of the service and consultant lists.
    """

    def __init__(self, services: Sequence[Service], consultants: Sequence[Consultant]):
        self._services: Dict[str, Service] = {s.id: s for s in services}
        self._consultants: Dict[str, Consultant] = {c.id: c for c in consultants}

        if len(self._services) != len(services):
            raise ValueError("Duplicate service id in catalog")
        if len(self._consultants) != len(consultants):
            raise ValueError("Duplicate consultant id in catalog")

        for consultant in consultants:
            if consultant.service_id not in self._services:
                raise ValueError(
                    f"Consultant {consultant.id} references unknown service {consultant.service_id}"
                )

    @property
    def services(self) -> List[Service]:
        return list(self._services.values())

    @property
    def consultants(self) -> List[Consultant]:
        return list(self._consultants.values())

    def find_service(self, service_id: Optional[str]) -> Optional[Service]:
        """Return the service with this id, or None."""
        if not service_id:
            return None
        return self._services.get(service_id)

    def find_consultant(self, consultant_id: Optional[str]) -> Optional[Consultant]:
        """Return the consultant with this id, or None."""
        if not consultant_id:
            return None
        return self._consultants.get(consultant_id)

    def consultants_for(self, service_id: str) -> List[Consultant]:
        """
        List consultants offering a service.

        Args:
            service_id: Service identifier

        Returns:
            Consultants whose ``service_id`` matches, in catalog order
        """
        return [c for c in self._consultants.values() if c.service_id == service_id]

    def __repr__(self) -> str:
        return f"<Catalog(services={len(self._services)}, consultants={len(self._consultants)})>"


DEFAULT_SERVICES = [
    Service(
        id="financial",
        name="Financial Consulting",
        description="Tax filing, audits, and investment strategies.",
        icon="Calculator",
        price=150,
    ),
    Service(
        id="legal",
        name="Legal Advisory",
        description="Contract review, business formation, and compliance.",
        icon="Scale",
        price=200,
    ),
    Service(
        id="marketing",
        name="Marketing Strategy",
        description="Brand growth, SEO, and social media campaigns.",
        icon="TrendingUp",
        price=120,
    ),
    Service(
        id="tech",
        name="Tech Solutions",
        description="Software architecture, cloud migration, and IT support.",
        icon="Cpu",
        price=180,
    ),
]

DEFAULT_CONSULTANTS = [
    Consultant(
        id="c1",
        name="Alice Johnson",
        specialty="Tax Specialist",
        service_id="financial",
        avatar_url="https://picsum.photos/100/100?random=1",
    ),
    Consultant(
        id="c2",
        name="Robert Smith",
        specialty="Corporate Lawyer",
        service_id="legal",
        avatar_url="https://picsum.photos/100/100?random=2",
    ),
    Consultant(
        id="c3",
        name="Sarah Lee",
        specialty="Growth Hacker",
        service_id="marketing",
        avatar_url="https://picsum.photos/100/100?random=3",
    ),
    Consultant(
        id="c4",
        name="David Chen",
        specialty="Cloud Architect",
        service_id="tech",
        avatar_url="https://picsum.photos/100/100?random=4",
    ),
]


def default_catalog() -> Catalog:
    """Build the consultancy's standard catalog."""
    return Catalog(DEFAULT_SERVICES, DEFAULT_CONSULTANTS)
