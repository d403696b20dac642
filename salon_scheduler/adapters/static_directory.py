"""
Service catalog and staff directory backed by the YAML configuration.
"""

import logging
from typing import Dict, List

from ..config import AppConfig, TenantConfig
from ..domain.exceptions import UnknownEntityError
from ..domain.models import Service, StaffMember

logger = logging.getLogger(__name__)


class StaticDirectory:
    """
    Serves services and staff from the ``tenants`` section of the config.

    Implements both the ServiceCatalog and the StaffDirectory protocol.
    """

    def __init__(self, tenants: List[TenantConfig]):
        self._tenants: Dict[str, TenantConfig] = {tenant.id: tenant for tenant in tenants}

    @classmethod
    def from_config(cls, config: AppConfig) -> "StaticDirectory":
        return cls(config.tenants)

    def tenant(self, tenant_id: str) -> TenantConfig:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise UnknownEntityError("tenant", tenant_id)
        return tenant

    def tenant_timezone(self, tenant_id: str) -> str:
        return self.tenant(tenant_id).timezone

    def list_active_services(self, tenant_id: str) -> List[Service]:
        return [
            service.to_domain()
            for service in self.tenant(tenant_id).services
            if service.active
        ]

    def list_eligible_staff(self, tenant_id: str) -> List[StaffMember]:
        tenant = self.tenant(tenant_id)
        staff = [
            member.to_domain(tenant.timezone)
            for member in tenant.staff
            if member.active and member.can_book
        ]
        logger.debug("Tenant %s has %d eligible staff", tenant_id, len(staff))
        return staff
