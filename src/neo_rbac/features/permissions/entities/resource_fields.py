"""Resource field specifications.

Per resource, the list of fields a record may carry and whether each field
is sensitive. Field redaction uses this data when a permission does not name
its allowed fields explicitly.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Tuple

from ....config.constants import IDENTIFIER_FIELD
from ....core.exceptions import ValidationError


@dataclass(frozen=True)
class FieldSpec:
    """A single field of a resource record."""

    name: str
    sensitive: bool = False


@dataclass(frozen=True)
class ResourceFieldSpec:
    """Field metadata for one resource."""

    resource: str
    fields: Tuple[FieldSpec, ...]
    identifier_field: str = IDENTIFIER_FIELD

    def __post_init__(self):
        object.__setattr__(self, 'fields', tuple(self.fields))
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValidationError(f"Duplicate field names in spec for resource {self.resource}")
        if self.identifier_field not in names:
            raise ValidationError(
                f"Identifier field {self.identifier_field} missing from spec for resource {self.resource}"
            )

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def sensitive_fields(self) -> FrozenSet[str]:
        return frozenset(f.name for f in self.fields if f.sensitive)

    @property
    def non_sensitive_fields(self) -> Tuple[str, ...]:
        """Non-sensitive field names in declaration order."""
        return tuple(f.name for f in self.fields if not f.sensitive)

    def is_sensitive(self, field_name: str) -> bool:
        return field_name in self.sensitive_fields


def define_resource(name: str, public: Iterable[str], sensitive: Iterable[str] = ()) -> ResourceFieldSpec:
    """Build a spec with the identifier first, then public and sensitive fields."""
    fields = [FieldSpec(IDENTIFIER_FIELD)]
    fields.extend(FieldSpec(f) for f in public if f != IDENTIFIER_FIELD)
    fields.extend(FieldSpec(f, sensitive=True) for f in sensitive)
    return ResourceFieldSpec(resource=name, fields=tuple(fields))


DEFAULT_RESOURCE_SPECS: Tuple[ResourceFieldSpec, ...] = (
    define_resource(
        "companies",
        public=["ragioneSociale", "citta", "provincia", "cap", "indirizzo", "settore",
                "tenantId", "createdAt", "updatedAt"],
        sensitive=["partitaIva", "codiceFiscale", "mail", "pec", "telefono", "iban", "sdi"],
    ),
    define_resource(
        "persons",
        public=["firstName", "lastName", "title", "status", "companyId", "departmentId",
                "tenantId", "createdAt", "updatedAt"],
        sensitive=["email", "phone", "residenceAddress", "residenceCity", "postalCode",
                   "taxCode", "birthDate", "birthPlace", "salary", "notes"],
    ),
    define_resource(
        "employees",
        public=["personId", "companyId", "departmentId", "siteId", "jobTitle", "hiredAt", "status"],
        sensitive=["salary", "contractType", "iban", "medicalNotes"],
    ),
    define_resource(
        "trainers",
        public=["personId", "firstName", "lastName", "specialties", "certifications", "status"],
        sensitive=["email", "phone", "taxCode", "vatNumber", "hourlyRate", "iban"],
    ),
    define_resource(
        "courses",
        public=["title", "code", "category", "description", "duration", "validityYears",
                "riskLevel", "courseType", "status", "maxPeople", "pricePerPerson"],
    ),
    define_resource(
        "training",
        public=["courseId", "trainerId", "companyId", "siteId", "startDate", "endDate",
                "location", "status", "attendees"],
        sensitive=["notes"],
    ),
    define_resource(
        "sites",
        public=["siteName", "companyId", "citta", "indirizzo", "cap", "provincia", "status"],
        sensitive=["telefono", "mail", "personaRiferimento", "doveRiferimento"],
    ),
    define_resource(
        "departments",
        public=["name", "code", "companyId", "siteId", "managerId", "parentId", "level"],
        sensitive=["budget"],
    ),
    define_resource(
        "documents",
        public=["title", "documentType", "companyId", "ownerId", "status", "createdAt"],
        sensitive=["content", "fileUrl", "checksum"],
    ),
    define_resource(
        "roles",
        public=["personId", "roleType", "companyId", "departmentId", "isPrimary",
                "status", "assignedAt", "expiresAt"],
        sensitive=["assignedBy", "customPermissions"],
    ),
    define_resource(
        "gdpr",
        public=["personId", "requestType", "status", "createdAt", "processedAt"],
        sensitive=["dataType", "payload", "ipAddress"],
    ),
)
