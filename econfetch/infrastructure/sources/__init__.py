"""Remote data source clients.

Each client turns provider responses into opaque JSON text payloads and maps
transport failures to RemoteApiError.
"""
