"""
Pipeline, reconciliation and publishing services for ClipForge.

- PipelineOrchestrator: runs or resumes a job's generation pipeline
- ClipReconciler: resolves pending clips from webhooks and polls
- PublishQueueWorker: publishes due and retry-eligible scheduled posts
"""

from clipforge.services.orchestrator import PipelineOrchestrator, PipelineRunResult
from clipforge.services.publish_queue import PublishQueueWorker, create_scheduled_post, record_audit
from clipforge.services.reconciler import ClipReconciler, ReconcileResult
from clipforge.services.scene_planning import PlannedScene, ScenePlan, build_scene_plan
from clipforge.services.tracking import STEP_ORDER, STEP_WEIGHTS, record_event

__all__ = [
    # Orchestrator
    "PipelineOrchestrator",
    "PipelineRunResult",
    # Reconciler
    "ClipReconciler",
    "ReconcileResult",
    # Publishing
    "PublishQueueWorker",
    "create_scheduled_post",
    "record_audit",
    # Scene planning
    "PlannedScene",
    "ScenePlan",
    "build_scene_plan",
    # Tracking
    "STEP_ORDER",
    "STEP_WEIGHTS",
    "record_event",
]
