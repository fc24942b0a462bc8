"""Cryptographic asset records and the CycloneDX vocabularies they use.

Assets are produced by an external inventory extractor (typically from a
CBOM document) and are read-only for the engine. Records validate from
plain dicts using either CycloneDX camelCase keys (``assetType``,
``algorithmProperties``, ``nistQuantumSecurityLevel``) or the snake_case
attribute names.

Categorical asset values (primitive, mode, ...) are kept as the extractor
reported them. Policies hold validated ``SymbolEnum`` members and compare
through ``normalize_symbol`` so that ``key-agree``, ``KEY_AGREE`` and
``Key Agree`` are the same symbol.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def normalize_symbol(value: Any) -> str:
    """Normalize an enumeration symbol for case-insensitive comparison.

    Args:
        value: Enum member, symbol name or CycloneDX value.

    Returns:
        Upper-case symbol with ``-`` and spaces folded to ``_`` and ``+`` spelled out.
    """
    if isinstance(value, Enum):
        value = value.name
    text = str(value).strip().upper()
    return text.replace("+", "_PLUS").replace("-", "_").replace(" ", "_")


class SymbolEnum(str, Enum):
    """String enum whose members also resolve from their symbolic names."""

    @classmethod
    def _missing_(cls, value: object) -> "SymbolEnum | None":
        if not isinstance(value, str):
            return None
        wanted = normalize_symbol(value)
        for member in cls:
            if member.name == wanted or normalize_symbol(member.value) == wanted:
                return member
        return None

    @classmethod
    def from_symbol(cls, value: Any) -> "SymbolEnum | None":
        """Resolve a member leniently.

        Args:
            value: Member, name or value in any case.

        Returns:
            The matching member, or None when the symbol is not recognized.
        """
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class AssetType(SymbolEnum):
    ALGORITHM = "algorithm"
    CERTIFICATE = "certificate"
    PROTOCOL = "protocol"
    RELATED_CRYPTO_MATERIAL = "related-crypto-material"


class Primitive(SymbolEnum):
    DRBG = "drbg"
    MAC = "mac"
    BLOCK_CIPHER = "block-cipher"
    STREAM_CIPHER = "stream-cipher"
    SIGNATURE = "signature"
    HASH = "hash"
    PKE = "pke"
    XOF = "xof"
    KDF = "kdf"
    KEY_AGREE = "key-agree"
    KEM = "kem"
    AE = "ae"
    COMBINER = "combiner"
    OTHER = "other"
    UNKNOWN = "unknown"


class Mode(SymbolEnum):
    CBC = "cbc"
    ECB = "ecb"
    CCM = "ccm"
    GCM = "gcm"
    CFB = "cfb"
    OFB = "ofb"
    CTR = "ctr"
    OTHER = "other"
    UNKNOWN = "unknown"


class Padding(SymbolEnum):
    PKCS5 = "pkcs5"
    PKCS7 = "pkcs7"
    PKCS1V15 = "pkcs1v15"
    OAEP = "oaep"
    RAW = "raw"
    OTHER = "other"
    UNKNOWN = "unknown"


class ExecutionEnvironment(SymbolEnum):
    SOFTWARE_PLAIN_RAM = "software-plain-ram"
    SOFTWARE_ENCRYPTED_RAM = "software-encrypted-ram"
    SOFTWARE_TEE = "software-tee"
    HARDWARE = "hardware"
    OTHER = "other"
    UNKNOWN = "unknown"


class ImplementationPlatform(SymbolEnum):
    GENERIC = "generic"
    X86_32 = "x86_32"
    X86_64 = "x86_64"
    ARMV7_A = "armv7-a"
    ARMV7_M = "armv7-m"
    ARMV8_A = "armv8-a"
    ARMV8_M = "armv8-m"
    ARMV9_A = "armv9-a"
    ARMV9_M = "armv9-m"
    S390X = "s390x"
    PPC64 = "ppc64"
    PPC64LE = "ppc64le"
    OTHER = "other"
    UNKNOWN = "unknown"


class CryptoFunction(SymbolEnum):
    GENERATE = "generate"
    KEYGEN = "keygen"
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"
    DIGEST = "digest"
    TAG = "tag"
    KEYDERIVE = "keyderive"
    SIGN = "sign"
    VERIFY = "verify"
    ENCAPSULATE = "encapsulate"
    DECAPSULATE = "decapsulate"
    OTHER = "other"
    UNKNOWN = "unknown"


class CertificationLevel(SymbolEnum):
    NONE = "none"
    FIPS140_1_L1 = "fips140-1-l1"
    FIPS140_1_L2 = "fips140-1-l2"
    FIPS140_1_L3 = "fips140-1-l3"
    FIPS140_1_L4 = "fips140-1-l4"
    FIPS140_2_L1 = "fips140-2-l1"
    FIPS140_2_L2 = "fips140-2-l2"
    FIPS140_2_L3 = "fips140-2-l3"
    FIPS140_2_L4 = "fips140-2-l4"
    FIPS140_3_L1 = "fips140-3-l1"
    FIPS140_3_L2 = "fips140-3-l2"
    FIPS140_3_L3 = "fips140-3-l3"
    FIPS140_3_L4 = "fips140-3-l4"
    CC_EAL1 = "cc-eal1"
    CC_EAL1_PLUS = "cc-eal1+"
    CC_EAL2 = "cc-eal2"
    CC_EAL2_PLUS = "cc-eal2+"
    CC_EAL3 = "cc-eal3"
    CC_EAL3_PLUS = "cc-eal3+"
    CC_EAL4 = "cc-eal4"
    CC_EAL4_PLUS = "cc-eal4+"
    CC_EAL5 = "cc-eal5"
    CC_EAL5_PLUS = "cc-eal5+"
    CC_EAL6 = "cc-eal6"
    CC_EAL6_PLUS = "cc-eal6+"
    CC_EAL7 = "cc-eal7"
    CC_EAL7_PLUS = "cc-eal7+"
    OTHER = "other"
    UNKNOWN = "unknown"


class ProtocolType(SymbolEnum):
    TLS = "tls"
    SSH = "ssh"
    IPSEC = "ipsec"
    IKE = "ike"
    SSTP = "sstp"
    WPA = "wpa"
    OTHER = "other"
    UNKNOWN = "unknown"


class RelatedCryptoMaterialType(SymbolEnum):
    PRIVATE_KEY = "private-key"
    PUBLIC_KEY = "public-key"
    SECRET_KEY = "secret-key"
    KEY = "key"
    CIPHERTEXT = "ciphertext"
    SIGNATURE = "signature"
    DIGEST = "digest"
    INITIALIZATION_VECTOR = "initialization-vector"
    NONCE = "nonce"
    SEED = "seed"
    SALT = "salt"
    SHARED_SECRET = "shared-secret"
    TAG = "tag"
    ADDITIONAL_DATA = "additional-data"
    PASSWORD = "password"
    CREDENTIAL = "credential"
    TOKEN = "token"
    OTHER = "other"
    UNKNOWN = "unknown"


class KeyState(SymbolEnum):
    PRE_ACTIVATION = "pre-activation"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"
    COMPROMISED = "compromised"
    DESTROYED = "destroyed"


# ---------------------------------------------------------------------------
# Property bags
# ---------------------------------------------------------------------------


class _PropertyBag(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class AlgorithmProperties(_PropertyBag):
    """Algorithm-specific asset properties."""

    primitive: str | None = None
    mode: str | None = None
    padding: str | None = None
    curve: str | None = None
    parameter_set_identifier: str | None = None
    execution_environment: str | None = None
    implementation_platform: str | None = None
    crypto_functions: tuple[str, ...] = ()
    certification_level: tuple[str, ...] = ()
    classical_security_level: int | None = None
    nist_quantum_security_level: int | None = None

    @field_validator("certification_level", mode="before")
    @classmethod
    def _wrap_single_level(cls, value: Any) -> Any:
        # CycloneDX 1.5 used a single string here, 1.6 an array.
        if isinstance(value, str):
            return (value,)
        return value


class CertificateProperties(_PropertyBag):
    """Certificate-specific asset properties."""

    subject_name: str | None = None
    issuer_name: str | None = None
    not_valid_before: str | None = None
    not_valid_after: str | None = None
    signature_algorithm_ref: str | None = None
    subject_public_key_ref: str | None = None
    certificate_format: str | None = None
    certificate_extension: str | None = None


class ProtocolProperties(_PropertyBag):
    """Protocol-specific asset properties.

    Attributes:
        type: Protocol family (tls, ssh, ipsec, ...).
        version: Protocol version string.
        cipher_suites: Names of the negotiated/offered cipher suites.
        ikev2_transform_types: IKEv2 transform type -> referenced algorithm bom-refs.
    """

    type: str | None = None
    version: str | None = None
    cipher_suites: tuple[str, ...] = ()
    ikev2_transform_types: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @field_validator("cipher_suites", mode="before")
    @classmethod
    def _suite_names(cls, value: Any) -> Any:
        if value is None:
            return ()
        return tuple(
            suite.get("name") if isinstance(suite, dict) else suite
            for suite in value
            if not (isinstance(suite, dict) and suite.get("name") is None)
        )

    @field_validator("ikev2_transform_types", mode="before")
    @classmethod
    def _transform_refs(cls, value: Any) -> Any:
        if value is None:
            return {}
        refs: dict[str, Any] = {}
        for transform_type, entry in value.items():
            if isinstance(entry, dict):
                entry = entry.get("ref") or []
            elif isinstance(entry, str):
                entry = [entry]
            refs[transform_type] = tuple(entry)
        return refs


class RelatedCryptoMaterialProperties(_PropertyBag):
    """Key material, tokens, nonces and other related crypto material."""

    type: str | None = None
    id: str | None = None
    state: str | None = None
    algorithm_ref: str | None = None
    creation_date: str | None = None
    activation_date: str | None = None
    update_date: str | None = None
    expiration_date: str | None = None
    value: str | None = None
    size: int | None = None
    format: str | None = None


class CryptographicAsset(BaseModel):
    """One cryptographic asset drawn from an inventory.

    Exactly one property bag is expected to be populated, the one matching
    ``asset_type``. An asset whose matching bag is missing is still valid;
    evaluators classify it as Unknown.

    Attributes:
        identifier: Stable key used in findings (the CBOM bom-ref).
        asset_type: Which kind of asset this is.
        name: Optional display name (component name).
        oid: Optional dotted object identifier.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    identifier: str
    asset_type: AssetType
    name: str | None = None
    oid: str | None = None
    algorithm_properties: AlgorithmProperties | None = None
    certificate_properties: CertificateProperties | None = None
    protocol_properties: ProtocolProperties | None = None
    related_crypto_material_properties: RelatedCryptoMaterialProperties | None = None

    @property
    def properties(self) -> _PropertyBag | None:
        """The property bag matching ``asset_type``, or None when absent."""
        return {
            AssetType.ALGORITHM: self.algorithm_properties,
            AssetType.CERTIFICATE: self.certificate_properties,
            AssetType.PROTOCOL: self.protocol_properties,
            AssetType.RELATED_CRYPTO_MATERIAL: self.related_crypto_material_properties,
        }[self.asset_type]
