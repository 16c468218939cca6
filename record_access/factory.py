"""
Builds a RecordAccessGateway and its production collaborators from Settings.
"""

from typing import Optional

from openfga_sdk import ClientConfiguration, OpenFgaClient
from openfga_sdk.credentials import CredentialConfiguration, Credentials

from .audit import AuditTrail, InMemoryAuditTrail, LoggingAuditTrail
from .auth_service import AccessDecisionResolver, OpenFgaGrantStore
from .blobstore import IpfsGatewayBlobStore
from .caching import AccessDecisionCache
from .catalog import RecordCatalog
from .config import Settings
from .gateway import ACCESS_CACHE_CATEGORY, RecordAccessGateway
from .models import CacheOptions, CachePriority
from .onchain import SorobanAccessVerifier


def create_openfga_client(settings: Settings) -> OpenFgaClient:
    """Create an OpenFGA client, with client-credentials auth when configured."""
    fga = settings.openfga
    configuration = ClientConfiguration(
        api_url=fga.api_url,
        store_id=fga.store_id or None,
        authorization_model_id=fga.authorization_model_id,
    )

    if fga.client_id and fga.client_secret:
        configuration.credentials = Credentials(
            method="client_credentials",
            configuration=CredentialConfiguration(
                client_id=fga.client_id,
                client_secret=fga.client_secret.get_secret_value(),
                api_issuer=fga.api_token_issuer,
                api_audience=fga.api_audience,
            ),
        )

    return OpenFgaClient(configuration)


def create_audit_trail(settings: Settings) -> AuditTrail:
    if settings.audit.sink == "memory":
        return InMemoryAuditTrail()
    return LoggingAuditTrail()


def create_gateway(
    settings: Settings,
    record_catalog: RecordCatalog,
    *,
    openfga_client: Optional[OpenFgaClient] = None,
    audit_trail: Optional[AuditTrail] = None,
    decision_cache: Optional[AccessDecisionCache] = None
) -> RecordAccessGateway:
    """
    Wire a gateway from settings.

    Args:
        settings: Loaded settings
        record_catalog: Catalog backed by the service's record storage
        openfga_client: Optional preconfigured OpenFGA client
        audit_trail: Optional audit sink overriding settings.audit.sink
        decision_cache: Optional shared decision cache

    Returns:
        A ready RecordAccessGateway
    """
    grant_store = OpenFgaGrantStore(
        openfga_client or create_openfga_client(settings),
        relation=settings.openfga.relation,
        authorization_model_id=settings.openfga.authorization_model_id,
    )
    verifier = SorobanAccessVerifier(
        rpc_url=settings.stellar.soroban_rpc_url,
        contract_id=settings.stellar.contract_id,
        timeout=settings.stellar.timeout_seconds,
    )
    blob_store = IpfsGatewayBlobStore(
        gateway_url=settings.ipfs.gateway_url,
        timeout=settings.ipfs.timeout_seconds,
    )
    cache = decision_cache or AccessDecisionCache(
        default_options=CacheOptions(
            ttl_ms=settings.cache.access_ttl_ms,
            category=ACCESS_CACHE_CATEGORY,
            priority=CachePriority.HIGH,
        ),
        max_entries=settings.cache.max_entries,
    )

    return RecordAccessGateway(
        record_catalog=record_catalog,
        resolver=AccessDecisionResolver(grant_store, verifier),
        decision_cache=cache,
        blob_store=blob_store,
        audit_trail=audit_trail or create_audit_trail(settings),
        access_ttl_ms=settings.cache.access_ttl_ms,
        include_storage_pointer=settings.audit.include_storage_pointer,
        audit_write_timeout=settings.audit.write_timeout_seconds,
    )
