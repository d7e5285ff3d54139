"""
Platform gateway.

Narrow async capability interface over the function-hosting API, plus the AWS
Lambda implementation backed by boto3. Reads that can legitimately miss return
Found/NOT_FOUND; every other failure raises PlatformError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lambdasync.core.errors import PlatformError
from lambdasync.core.models import (
    NOT_FOUND,
    Alias,
    Found,
    FunctionConfig,
    FunctionVersion,
    LayerVersion,
    Lookup,
    ObservedLayerState,
)

logger = logging.getLogger("lambdasync.gateway")

NOT_FOUND_CODES = frozenset({"ResourceNotFoundException"})


class PlatformGateway(Protocol):
    async def get_function_config(self, name: str) -> Lookup[FunctionConfig]: ...

    async def create_function(self, params: Dict[str, Any], archive: bytes) -> FunctionConfig: ...

    async def update_function_code(
        self, name: str, archive: bytes, architectures: Optional[Sequence[str]] = None
    ) -> FunctionConfig: ...

    async def update_function_config(
        self, name: str, overrides: Dict[str, Any]
    ) -> FunctionConfig: ...

    async def publish_version(self, name: str) -> FunctionVersion: ...

    async def list_versions(self, name: str) -> List[FunctionVersion]: ...

    async def list_aliases(self, name: str) -> List[Alias]: ...

    async def delete_version(self, name: str, version: str) -> None: ...

    async def list_latest_layer_version(self, layer_name: str) -> Lookup[ObservedLayerState]: ...

    async def publish_layer_version(
        self, layer_name: str, fingerprint: str, archive: bytes
    ) -> LayerVersion: ...

    async def list_layer_versions(self, layer_name: str) -> List[LayerVersion]: ...

    async def delete_layer_version(self, layer_name: str, version: int) -> None: ...


def create_lambda_client(
    *,
    region: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
):
    """Create a Lambda client; explicit keys win over the default credential chain."""
    session_kwargs: Dict[str, Any] = {}
    if profile:
        session_kwargs["profile_name"] = profile
    if access_key_id and secret_access_key:
        session_kwargs["aws_access_key_id"] = access_key_id
        session_kwargs["aws_secret_access_key"] = secret_access_key
    if region:
        session_kwargs["region_name"] = region

    session = boto3.session.Session(**session_kwargs)
    return session.client(
        "lambda",
        endpoint_url=endpoint_url,
        config=Config(retries={"mode": "standard"}),
    )


class LambdaGateway:
    """PlatformGateway over a boto3 Lambda client; blocking calls run in worker threads."""

    def __init__(self, client):
        self.client = client

    async def _call(self, operation: str, target: str, fn: Callable[[], Any]) -> Any:
        logger.debug("%s %s", operation, target)
        try:
            return await asyncio.to_thread(fn)
        except ClientError as e:
            error = e.response.get("Error", {})
            raise PlatformError(
                operation, target, error.get("Code", "Unknown"), error.get("Message", str(e))
            ) from e
        except BotoCoreError as e:
            raise PlatformError(operation, target, e.__class__.__name__, str(e)) from e

    async def get_function_config(self, name: str) -> Lookup[FunctionConfig]:
        try:
            response = await self._call(
                "GetFunctionConfiguration",
                name,
                lambda: self.client.get_function_configuration(FunctionName=name),
            )
        except PlatformError as e:
            if e.code in NOT_FOUND_CODES:
                return NOT_FOUND
            raise
        return Found(_to_function_config(response))

    async def create_function(self, params: Dict[str, Any], archive: bytes) -> FunctionConfig:
        name = params["FunctionName"]
        response = await self._call(
            "CreateFunction",
            name,
            lambda: self.client.create_function(**params, Code={"ZipFile": archive}),
        )
        return _to_function_config(response)

    async def update_function_code(
        self, name: str, archive: bytes, architectures: Optional[Sequence[str]] = None
    ) -> FunctionConfig:
        kwargs: Dict[str, Any] = {"FunctionName": name, "ZipFile": archive}
        if architectures:
            kwargs["Architectures"] = list(architectures)
        response = await self._call(
            "UpdateFunctionCode", name, lambda: self.client.update_function_code(**kwargs)
        )
        return _to_function_config(response)

    async def update_function_config(
        self, name: str, overrides: Dict[str, Any]
    ) -> FunctionConfig:
        kwargs = {key: value for key, value in overrides.items() if key != "Architectures"}
        kwargs["FunctionName"] = name
        response = await self._call(
            "UpdateFunctionConfiguration",
            name,
            lambda: self.client.update_function_configuration(**kwargs),
        )
        return _to_function_config(response)

    async def publish_version(self, name: str) -> FunctionVersion:
        response = await self._call(
            "PublishVersion", name, lambda: self.client.publish_version(FunctionName=name)
        )
        return _to_function_version(response)

    async def list_versions(self, name: str) -> List[FunctionVersion]:
        def _list() -> List[FunctionVersion]:
            paginator = self.client.get_paginator("list_versions_by_function")
            versions: List[FunctionVersion] = []
            for page in paginator.paginate(FunctionName=name):
                versions.extend(_to_function_version(item) for item in page.get("Versions", []))
            return versions

        return await self._call("ListVersionsByFunction", name, _list)

    async def list_aliases(self, name: str) -> List[Alias]:
        def _list() -> List[Alias]:
            paginator = self.client.get_paginator("list_aliases")
            aliases: List[Alias] = []
            for page in paginator.paginate(FunctionName=name):
                for item in page.get("Aliases", []):
                    routing = item.get("RoutingConfig") or {}
                    weights = routing.get("AdditionalVersionWeights") or {}
                    aliases.append(
                        Alias(
                            name=item["Name"],
                            function_version=item["FunctionVersion"],
                            additional_versions=tuple(weights.keys()),
                        )
                    )
            return aliases

        return await self._call("ListAliases", name, _list)

    async def delete_version(self, name: str, version: str) -> None:
        await self._call(
            "DeleteFunction",
            f"{name}:{version}",
            lambda: self.client.delete_function(FunctionName=name, Qualifier=version),
        )

    async def list_latest_layer_version(self, layer_name: str) -> Lookup[ObservedLayerState]:
        try:
            response = await self._call(
                "ListLayerVersions",
                layer_name,
                lambda: self.client.list_layer_versions(LayerName=layer_name, MaxItems=1),
            )
        except PlatformError as e:
            if e.code in NOT_FOUND_CODES:
                return NOT_FOUND
            raise
        items = response.get("LayerVersions", [])
        if not items:
            return NOT_FOUND
        newest = items[0]
        return Found(
            ObservedLayerState(
                fingerprint=newest.get("Description", ""),
                arn=newest["LayerVersionArn"],
                version=int(newest["Version"]),
            )
        )

    async def publish_layer_version(
        self, layer_name: str, fingerprint: str, archive: bytes
    ) -> LayerVersion:
        response = await self._call(
            "PublishLayerVersion",
            layer_name,
            lambda: self.client.publish_layer_version(
                LayerName=layer_name,
                Description=fingerprint,
                Content={"ZipFile": archive},
            ),
        )
        return LayerVersion(
            version=int(response["Version"]),
            arn=response["LayerVersionArn"],
            description=response.get("Description", ""),
        )

    async def list_layer_versions(self, layer_name: str) -> List[LayerVersion]:
        def _list() -> List[LayerVersion]:
            paginator = self.client.get_paginator("list_layer_versions")
            versions: List[LayerVersion] = []
            for page in paginator.paginate(LayerName=layer_name):
                for item in page.get("LayerVersions", []):
                    versions.append(
                        LayerVersion(
                            version=int(item["Version"]),
                            arn=item["LayerVersionArn"],
                            description=item.get("Description", ""),
                        )
                    )
            # The API lists newest first; callers expect oldest first.
            versions.reverse()
            return versions

        return await self._call("ListLayerVersions", layer_name, _list)

    async def delete_layer_version(self, layer_name: str, version: int) -> None:
        await self._call(
            "DeleteLayerVersion",
            f"{layer_name}:{version}",
            lambda: self.client.delete_layer_version(LayerName=layer_name, VersionNumber=version),
        )


def _to_function_config(response: Dict[str, Any]) -> FunctionConfig:
    return FunctionConfig(
        name=response.get("FunctionName", ""),
        arn=response.get("FunctionArn", ""),
        state=response.get("State"),
        last_update_status=response.get("LastUpdateStatus"),
        last_update_status_reason=response.get("LastUpdateStatusReason"),
        layers=tuple(layer["Arn"] for layer in response.get("Layers", []) or []),
    )


def _to_function_version(response: Dict[str, Any]) -> FunctionVersion:
    return FunctionVersion(
        version=str(response["Version"]),
        arn=response.get("FunctionArn", ""),
        layers=tuple(layer["Arn"] for layer in response.get("Layers", []) or []),
    )
