"""Turn ADO.NET style connection strings into ODBC ones usable with an access token."""

from __future__ import annotations

from entra_data_tools.results import SQLConfigurationError

# ADO.NET keyword -> ODBC keyword
_SYNONYMS = {
    "data source": "Server",
    "address": "Server",
    "addr": "Server",
    "network address": "Server",
    "server": "Server",
    "initial catalog": "Database",
    "database": "Database",
    "driver": "Driver",
    "encrypt": "Encrypt",
    "trustservercertificate": "TrustServerCertificate",
    "trust server certificate": "TrustServerCertificate",
    "hostnameincertificate": "HostNameInCertificate",
    "host name in certificate": "HostNameInCertificate",
    "application name": "APP",
    "app": "APP",
    "applicationintent": "ApplicationIntent",
    "application intent": "ApplicationIntent",
    "multisubnetfailover": "MultiSubnetFailover",
    "multi subnet failover": "MultiSubnetFailover",
}

# The access token supplies identity; these would conflict with it or are not ODBC keywords.
_DROPPED = {
    "user id",
    "userid",
    "uid",
    "user",
    "password",
    "pwd",
    "authentication",
    "integrated security",
    "trusted_connection",
    "persist security info",
    "persistsecurityinfo",
    "multipleactiveresultsets",
    "connection timeout",
    "connect timeout",
    "connection lifetime",
    "pooling",
    "max pool size",
    "min pool size",
}


def parse_connection_string(connection_string: str) -> list[tuple[str, str]]:
    """Split ``key=value;`` pairs, honouring ``{...}`` quoted values."""

    pairs: list[tuple[str, str]] = []
    index = 0
    length = len(connection_string)
    while index < length:
        equals = connection_string.find("=", index)
        if equals == -1:
            remainder = connection_string[index:].strip(" ;")
            if remainder:
                raise SQLConfigurationError(f"Malformed connection string segment: {remainder!r}")
            break
        key = connection_string[index:equals].strip(" ;")
        index = equals + 1
        while index < length and connection_string[index] == " ":
            index += 1
        if index < length and connection_string[index] == "{":
            end = index + 1
            while True:
                end = connection_string.find("}", end)
                if end == -1:
                    raise SQLConfigurationError(f"Unterminated braced value for {key!r}")
                if end + 1 < length and connection_string[end + 1] == "}":
                    end += 2
                    continue
                break
            value = connection_string[index : end + 1]
            index = end + 1
            separator = connection_string.find(";", index)
            index = length if separator == -1 else separator + 1
        else:
            separator = connection_string.find(";", index)
            if separator == -1:
                value = connection_string[index:].strip()
                index = length
            else:
                value = connection_string[index:separator].strip()
                index = separator + 1
        if key:
            pairs.append((key, value))
    return pairs


def to_odbc_connection_string(connection_string: str, *, driver: str) -> str:
    """Normalize ``connection_string`` for token authentication through pyodbc."""

    if not connection_string.strip():
        raise SQLConfigurationError("No SQL connection string is configured.")

    normalized: dict[str, str] = {}
    for key, value in parse_connection_string(connection_string):
        lowered = " ".join(key.lower().split())
        if lowered in _DROPPED:
            continue
        odbc_key = _SYNONYMS.get(lowered, key)
        if odbc_key == "Encrypt":
            value = _odbc_bool(value)
        elif odbc_key == "TrustServerCertificate":
            value = _odbc_bool(value)
        normalized[odbc_key] = value

    if "Server" not in normalized:
        raise SQLConfigurationError("SQL connection string does not name a server.")
    if "Driver" not in normalized:
        normalized = {"Driver": f"{{{driver}}}", **normalized}

    return "".join(f"{key}={value};" for key, value in normalized.items())


def _odbc_bool(value: str) -> str:
    lowered = value.strip().lower()
    if lowered in {"true", "yes", "mandatory"}:
        return "yes"
    if lowered in {"false", "no", "optional"}:
        return "no"
    return value


__all__ = ["parse_connection_string", "to_odbc_connection_string"]
