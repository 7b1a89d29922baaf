from autopostr.infrastructure.graph_client import GraphClient
from autopostr.infrastructure.workflow_client import WorkflowWebhookClient


def get_graph_client() -> GraphClient:
    return GraphClient()


def get_workflow_client() -> WorkflowWebhookClient:
    return WorkflowWebhookClient()
