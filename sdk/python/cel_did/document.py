"""
DID Document projection for did:cel.

The resolver folds each event's changes into a DidDocument, one event at a
time, in log order. A DidDocument describes:
- Verification methods (Multikey public keys) authorized to extend the log
- Service endpoints, including approved event log storage
- Whether the identifier is currently deactivated
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cel_did.did import Did
from cel_did.encoding import decode_multikey
from cel_did.errors import InvalidDIDError, SerializationError

STORAGE_SERVICE_TYPE = "CelStorageService"

DID_CONTEXT = [
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/multikey/v1",
]


class VerificationMethod(BaseModel):
    """A Multikey verification method.

    Ids are usually relative (``#key-1``) because the DID does not exist
    until the genesis event is hashed.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    id: str
    type: str = "Multikey"
    controller: str | None = None
    public_key_multibase: str = Field(alias="publicKeyMultibase")

    @field_validator("public_key_multibase")
    @classmethod
    def _check_multikey(cls, value: str) -> str:
        try:
            decode_multikey(value)
        except SerializationError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @property
    def public_key(self) -> bytes:
        """Raw 32/33/49 byte public key."""
        return decode_multikey(self.public_key_multibase)


class Service(BaseModel):
    """A service endpoint."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    id: str
    type: str
    service_endpoint: str = Field(alias="serviceEndpoint")


@dataclass(frozen=True)
class DidDocument:
    """
    The projected state of a did:cel identifier.

    Builder methods return new documents; a document is never mutated.

    Example:
        >>> doc = DidDocument(did="did:cel:z...")
        >>> doc = doc.with_key(vm).with_service(storage)
        >>> doc.to_dict()
    """

    did: str
    verification_methods: tuple[VerificationMethod, ...] = ()
    services: tuple[Service, ...] = ()
    deactivated: bool = False
    updated: str | None = None
    event_count: int = 0
    head: str | None = None

    def _key_index(self, key_id: str) -> int:
        for position, vm in enumerate(self.verification_methods):
            if vm.id == key_id:
                return position
        raise ValueError(f"unknown verification method {key_id}")

    def _service_index(self, service_id: str) -> int:
        for position, service in enumerate(self.services):
            if service.id == service_id:
                return position
        raise ValueError(f"unknown service {service_id}")

    def with_key(self, vm: VerificationMethod) -> DidDocument:
        """Add a verification method."""
        if any(existing.id == vm.id for existing in self.verification_methods):
            raise ValueError(f"duplicate verification method {vm.id}")
        return replace(self, verification_methods=(*self.verification_methods, vm))

    def rotate_key(self, key_id: str, vm: VerificationMethod) -> DidDocument:
        """Replace ``key_id`` with ``vm`` in place."""
        position = self._key_index(key_id)
        if vm.id != key_id and any(existing.id == vm.id for existing in self.verification_methods):
            raise ValueError(f"duplicate verification method {vm.id}")
        methods = list(self.verification_methods)
        methods[position] = vm
        return replace(self, verification_methods=tuple(methods))

    def revoke_key(self, key_id: str) -> DidDocument:
        position = self._key_index(key_id)
        methods = self.verification_methods[:position] + self.verification_methods[position + 1 :]
        return replace(self, verification_methods=methods)

    def with_service(self, service: Service) -> DidDocument:
        if any(existing.id == service.id for existing in self.services):
            raise ValueError(f"duplicate service {service.id}")
        return replace(self, services=(*self.services, service))

    def without_service(self, service_id: str) -> DidDocument:
        position = self._service_index(service_id)
        return replace(self, services=self.services[:position] + self.services[position + 1 :])

    def find_key(self, verification_method: str) -> VerificationMethod | None:
        """
        Find the authorized key a proof's ``verificationMethod`` names.

        Accepts a relative id (``#key-1``), the id qualified with this DID,
        or a did:key URL for one of the authorized keys.
        """
        if verification_method.startswith(f"{self.did}#"):
            verification_method = verification_method[len(self.did) :]

        for vm in self.verification_methods:
            if vm.id == verification_method:
                return vm

        if verification_method.startswith("did:key:"):
            try:
                public_key = Did.parse(verification_method).public_key
            except InvalidDIDError:
                return None
            for vm in self.verification_methods:
                if vm.public_key == public_key:
                    return vm

        return None

    def approves_storage(self, url: str) -> bool:
        """True when ``url`` is listed verbatim as an approved storage service."""
        return any(
            service.type == STORAGE_SERVICE_TYPE and service.service_endpoint == url
            for service in self.services
        )

    def _qualify(self, value: str) -> str:
        return f"{self.did}{value}" if value.startswith("#") else value

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a JSON-serializable DID document.

        Relative ids are qualified with the DID.
        """
        doc: dict[str, Any] = {
            "@context": DID_CONTEXT,
            "id": self.did,
            "verificationMethod": [
                {
                    "id": self._qualify(vm.id),
                    "type": vm.type,
                    "controller": vm.controller or self.did,
                    "publicKeyMultibase": vm.public_key_multibase,
                }
                for vm in self.verification_methods
            ],
            "authentication": [self._qualify(vm.id) for vm in self.verification_methods],
            "assertionMethod": [self._qualify(vm.id) for vm in self.verification_methods],
        }

        if self.services:
            doc["service"] = [
                {
                    "id": self._qualify(s.id),
                    "type": s.type,
                    "serviceEndpoint": s.service_endpoint,
                }
                for s in self.services
            ]

        if self.deactivated:
            doc["deactivated"] = True

        return doc

    def __repr__(self) -> str:
        state = "deactivated" if self.deactivated else "active"
        return f"DidDocument({self.did}, {state}, events={self.event_count})"
