"""
The fixed candidate node table and per-tier sizing profiles.

``DEFAULT_NODE_TABLE`` is an ordered tuple of ``NodeSpec`` descriptors.
Order matters: it breaks ties when the builder sorts nodes with no
dependency relation between them.

Node table::

    edge+storage         requires -                        produces edge-cache, object-store
    application-runtime  requires object-store             produces compute-function, http-endpoint,
                                                                    key-value-table, log-group
    delivery-pipeline    requires compute-function         produces pipeline
    observability        requires edge-cache, compute-function,
                                  http-endpoint, key-value-table
                                                           produces alert-channel

``delivery-pipeline`` and ``observability`` exist only in staging and
production, and only while their build flag is enabled.
"""

from __future__ import annotations

from stackgraph.topology.nodes import (
    BuildFlags,
    NodeContext,
    NodeOutput,
    NodeSpec,
    ResourceDeclaration,
    TierProfile,
    always,
)
from stackgraph.types import EnvironmentTier, HandleKind

EDGE_STORAGE = "edge+storage"
APPLICATION_RUNTIME = "application-runtime"
DELIVERY_PIPELINE = "delivery-pipeline"
OBSERVABILITY = "observability"


TIER_PROFILES: dict[EnvironmentTier, TierProfile] = {
    EnvironmentTier.DEVELOPMENT: TierProfile(
        function_memory_mb=512,
        function_log_retention_days=7,
        application_log_retention_days=14,
        log_level="debug",
        node_env="development",
    ),
    EnvironmentTier.STAGING: TierProfile(
        function_memory_mb=768,
        function_log_retention_days=14,
        application_log_retention_days=30,
        log_level="debug",
        node_env="development",
    ),
    EnvironmentTier.PRODUCTION: TierProfile(
        function_memory_mb=1024,
        function_log_retention_days=30,
        application_log_retention_days=180,
        log_level="warn",
        node_env="production",
        dead_letter_queue=True,
        insights_enabled=True,
    ),
}


# ---------------------------------------------------------------------------
# Inclusion predicates
# ---------------------------------------------------------------------------


def delivery_included(tier: EnvironmentTier, flags: BuildFlags) -> bool:
    return tier.is_deployed_tier and flags.enable_delivery


def observability_included(tier: EnvironmentTier, flags: BuildFlags) -> bool:
    return tier.is_deployed_tier and flags.enable_monitoring


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def construct_edge_storage(ctx: NodeContext) -> NodeOutput:
    """Static assets bucket fronted by an edge distribution."""
    bucket_name = ctx.resource_name("assets")
    if ctx.config.account:
        bucket_name = f"{bucket_name}-{ctx.config.account}"
    distribution_name = ctx.resource_name("distribution")

    bucket = ctx.handle(HandleKind.OBJECT_STORE, "assets-bucket", bucket_name)
    distribution = ctx.handle(HandleKind.EDGE_CACHE, "distribution", distribution_name)

    resources = [
        ResourceDeclaration(
            logical_id="AssetsBucket",
            resource_type="object-store.bucket",
            properties={
                "bucket_name": bucket_name,
                "block_public_access": True,
                "encryption": "managed",
                "auto_delete_objects": True,
                "cors": [{"allowed_methods": ["GET"], "allowed_origins": ["*"]}],
            },
        ),
        ResourceDeclaration(
            logical_id="OriginAccessControl",
            resource_type="edge-cache.origin-access-control",
            properties={
                "name": f"oac-{distribution_name}",
                "origin_type": "s3",
                "signing_behavior": "always",
                "signing_protocol": "sigv4",
            },
        ),
        ResourceDeclaration(
            logical_id="Distribution",
            resource_type="edge-cache.distribution",
            properties={
                "name": distribution_name,
                "origin": bucket.id,
                "default_behavior": {
                    "viewer_protocol_policy": "redirect-to-https",
                    "cache_policy": "caching-optimized",
                    "compress": True,
                },
                "additional_behaviors": {
                    "/api/*": {"cache_policy": "caching-disabled"},
                    "/_next/static/*": {
                        "cache_policy": "caching-optimized-for-uncompressed-objects"
                    },
                },
                "price_class": "PriceClass_100",
                "enable_ipv6": True,
                "minimum_protocol_version": "TLSv1.2_2021",
            },
        ),
        ResourceDeclaration(
            logical_id="AssetsBucketPolicy",
            resource_type="object-store.bucket-policy",
            properties={
                "bucket": bucket.id,
                "sid": "AllowEdgeServicePrincipal",
                "actions": ["s3:GetObject"],
                "source_distribution": distribution.id,
            },
        ),
    ]
    return NodeOutput(resources=resources, outputs=[distribution, bucket])


def construct_application_runtime(ctx: NodeContext) -> NodeOutput:
    """Server-side rendering function, session table and HTTP API."""
    profile = ctx.profile
    assets = ctx.input(HandleKind.OBJECT_STORE)

    function_name = ctx.resource_name()
    table_name = ctx.resource_name("sessions")
    api_name = ctx.resource_name("api")
    log_group_name = f"/aws/application/{ctx.config.application_name}-{ctx.stage}"

    function = ctx.handle(HandleKind.COMPUTE_FUNCTION, "function", function_name)
    endpoint = ctx.handle(HandleKind.HTTP_ENDPOINT, "api", api_name)
    table = ctx.handle(HandleKind.KEY_VALUE_TABLE, "session-table", table_name)
    log_group = ctx.handle(HandleKind.LOG_GROUP, "application-logs", log_group_name)

    resources = [
        ResourceDeclaration(
            logical_id="SessionTable",
            resource_type="key-value-table.table",
            properties={
                "table_name": table_name,
                "partition_key": {"name": "sessionId", "type": "string"},
                "billing_mode": "pay-per-request",
                "time_to_live_attribute": "ttl",
                "point_in_time_recovery": False,
            },
        ),
        ResourceDeclaration(
            logical_id="FunctionLogGroup",
            resource_type="log-group.log-group",
            properties={
                "log_group_name": f"/aws/lambda/{function_name}",
                "retention_days": profile.function_log_retention_days,
            },
        ),
        ResourceDeclaration(
            logical_id="Function",
            resource_type="compute-function.function",
            properties={
                "function_name": function_name,
                "runtime": "nodejs18.x",
                "handler": "index.handler",
                "memory_mb": profile.function_memory_mb,
                "timeout_seconds": profile.function_timeout_seconds,
                "dead_letter_queue": profile.dead_letter_queue,
                "insights": profile.insights_enabled,
                "environment": {
                    "NODE_ENV": profile.node_env,
                    "STAGE": ctx.stage,
                    "LOG_LEVEL": profile.log_level,
                    "DYNAMODB_TABLE_NAME": table_name,
                    "ASSETS_BUCKET_NAME": assets.name,
                },
            },
        ),
        ResourceDeclaration(
            logical_id="FunctionGrants",
            resource_type="iam.grants",
            properties={
                "grantee": function.id,
                "read_write": [table.id],
                "read": [assets.id],
            },
        ),
        ResourceDeclaration(
            logical_id="Api",
            resource_type="http-endpoint.rest-api",
            properties={
                "api_name": api_name,
                "endpoint_type": "regional",
                "stage_name": ctx.stage,
                "throttling_rate_limit": profile.api_rate_limit,
                "throttling_burst_limit": profile.api_burst_limit,
                "logging_level": "ERROR",
                "metrics_enabled": True,
                "routes": [
                    {"path": "/{proxy+}", "method": "ANY", "target": function.id},
                    {"path": "/health", "method": "GET", "target": function.id},
                ],
            },
        ),
        ResourceDeclaration(
            logical_id="ApplicationLogGroup",
            resource_type="log-group.log-group",
            properties={
                "log_group_name": log_group_name,
                "retention_days": profile.application_log_retention_days,
            },
        ),
    ]
    return NodeOutput(resources=resources, outputs=[function, endpoint, table, log_group])


def construct_delivery_pipeline(ctx: NodeContext) -> NodeOutput:
    """Source-to-deploy pipeline; production adds a manual approval stage."""
    config = ctx.config
    target = ctx.input(HandleKind.COMPUTE_FUNCTION)

    pipeline_name = ctx.resource_name()
    project_name = ctx.resource_name("deploy")
    artifact_bucket = ctx.resource_name("artifacts")
    if config.account:
        artifact_bucket = f"{artifact_bucket}-{config.account}"

    pipeline = ctx.handle(HandleKind.PIPELINE, "pipeline", pipeline_name)

    stages: list[dict] = [
        {"name": "Source", "action": "source", "branch": config.source_branch},
        {"name": "Deploy", "action": "build", "project": project_name},
    ]
    if ctx.is_production:
        stages.append(
            {
                "name": "ManualApproval",
                "action": "approval",
                "instructions": (
                    f"Review the staging environment before approving deployment "
                    f"of {config.source_branch} to {ctx.stage} in {config.region}."
                ),
            }
        )

    resources = [
        ResourceDeclaration(
            logical_id="ArtifactBucket",
            resource_type="object-store.bucket",
            properties={
                "bucket_name": artifact_bucket,
                "versioned": True,
                "encryption": "managed",
                "lifecycle": {"expiration_days": 30, "noncurrent_expiration_days": 7},
            },
        ),
        ResourceDeclaration(
            logical_id="DeployLogGroup",
            resource_type="log-group.log-group",
            properties={
                "log_group_name": f"/aws/codebuild/{project_name}",
                "retention_days": 7,
            },
        ),
        ResourceDeclaration(
            logical_id="DeployProject",
            resource_type="pipeline.build-project",
            properties={
                "project_name": project_name,
                "source": {
                    "owner": config.source_owner,
                    "repo": config.source_repo,
                    "branch": config.source_branch,
                },
                "compute_type": "small",
                "timeout_minutes": 30,
                "environment": {"STAGE": ctx.stage, "TARGET_FUNCTION": target.name},
                "phases": {
                    "install": ["npm ci"],
                    "pre_build": ["npm run lint", "npm run type-check"],
                    "build": ["npm run build", f"deploy --all --context stage={ctx.stage}"],
                },
            },
        ),
        ResourceDeclaration(
            logical_id="Pipeline",
            resource_type="pipeline.pipeline",
            properties={
                "pipeline_name": pipeline_name,
                "artifact_bucket": artifact_bucket,
                "stages": stages,
            },
        ),
    ]
    return NodeOutput(resources=resources, outputs=[pipeline])


def construct_observability(ctx: NodeContext) -> NodeOutput:
    """Alert topic, optional email subscription and the dashboard shell."""
    topic_name = ctx.resource_name("alerts")
    channel = ctx.handle(HandleKind.ALERT_CHANNEL, "alert-topic", topic_name)

    resources = [
        ResourceDeclaration(
            logical_id="AlertTopic",
            resource_type="alert-channel.topic",
            properties={
                "topic_name": topic_name,
                "display_name": f"{ctx.config.application_name} alerts - {ctx.stage}",
            },
        ),
    ]
    if ctx.flags.alert_email:
        resources.append(
            ResourceDeclaration(
                logical_id="AlertEmailSubscription",
                resource_type="alert-channel.subscription",
                properties={
                    "topic": channel.id,
                    "protocol": "email",
                    "endpoint": ctx.flags.alert_email,
                },
            )
        )
    resources.append(
        ResourceDeclaration(
            logical_id="Dashboard",
            resource_type="monitoring.dashboard",
            properties={
                "dashboard_name": ctx.resource_name(),
                "monitors": sorted(h.id for h in ctx.inputs.values()),
            },
        )
    )
    return NodeOutput(resources=resources, outputs=[channel])


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


DEFAULT_NODE_TABLE: tuple[NodeSpec, ...] = (
    NodeSpec(
        id=EDGE_STORAGE,
        stack_suffix="shared",
        description="Shared edge distribution and static asset storage",
        declared_outputs=(HandleKind.EDGE_CACHE, HandleKind.OBJECT_STORE),
        included_when=always,
        construct=construct_edge_storage,
    ),
    NodeSpec(
        id=APPLICATION_RUNTIME,
        stack_suffix="frontend",
        description="Server-side rendering runtime, session storage and HTTP API",
        required_inputs=frozenset({HandleKind.OBJECT_STORE}),
        declared_outputs=(
            HandleKind.COMPUTE_FUNCTION,
            HandleKind.HTTP_ENDPOINT,
            HandleKind.KEY_VALUE_TABLE,
            HandleKind.LOG_GROUP,
        ),
        included_when=always,
        construct=construct_application_runtime,
    ),
    NodeSpec(
        id=DELIVERY_PIPELINE,
        stack_suffix="cicd",
        description="Continuous delivery pipeline",
        required_inputs=frozenset({HandleKind.COMPUTE_FUNCTION}),
        declared_outputs=(HandleKind.PIPELINE,),
        included_when=delivery_included,
        construct=construct_delivery_pipeline,
    ),
    NodeSpec(
        id=OBSERVABILITY,
        stack_suffix="monitoring",
        description="Alerting channel and dashboards",
        required_inputs=frozenset(
            {
                HandleKind.EDGE_CACHE,
                HandleKind.COMPUTE_FUNCTION,
                HandleKind.HTTP_ENDPOINT,
                HandleKind.KEY_VALUE_TABLE,
            }
        ),
        declared_outputs=(HandleKind.ALERT_CHANNEL,),
        included_when=observability_included,
        construct=construct_observability,
    ),
)


def without_node(table: tuple[NodeSpec, ...], node_id: str) -> tuple[NodeSpec, ...]:
    """Copy of ``table`` with ``node_id`` removed."""
    return tuple(spec for spec in table if spec.id != node_id)
