"""
DynamoDB adapters for appstatus.

Requires the `dynamodb` extra: pip install appstatus[dynamodb]

Usage:
    from appstatus.adapters.dynamodb import DynamoDBDeploymentStore, DynamoDBRepository
    from appstatus import ApplicationService, StaticConfigFetcher

    service = ApplicationService(
        repository=DynamoDBRepository(table_name="apps"),
        config_fetcher=StaticConfigFetcher(),
        deployments=DynamoDBDeploymentStore(table_name="app-deployments"),
    )
"""

import logging
import os
from typing import Any, Optional

from appstatus.deployments import Deployment
from appstatus.states import STATUS_CODES, AppStatus, Application

logger = logging.getLogger(__name__)

try:
    import boto3
    from botocore.exceptions import ClientError
except ImportError:
    raise ImportError("boto3 is required for the DynamoDB adapter. Install it with: pip install appstatus[dynamodb]")


class _DynamoDBTable:
    """Lazily resolved DynamoDB table handle."""

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._table_name = table_name
        self._region_name = region_name
        self._client = client
        self._table = None

    @property
    def table(self) -> Any:
        if self._table is None:
            if self._client is None:
                kwargs = {}
                if self._region_name:
                    kwargs["region_name"] = self._region_name
                self._client = boto3.resource("dynamodb", **kwargs)
            self._table = self._client.Table(self._table_name)
        return self._table


class DynamoDBRepository(_DynamoDBTable):
    """
    DynamoDB-backed repository for Applications.

    Table schema:
        Partition key: application_id (S)

    Optional GSI for status queries:
        GSI name: status-index
        Partition key: status (N)
        Sort key: updated_at (S)
    """

    STATUS_INDEX = "status-index"

    def __init__(
        self,
        table_name: Optional[str] = None,
        region_name: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__(table_name or os.environ.get("APPSTATUS_TABLE", "appstatus"), region_name, client)

    def _load(self, item: dict[str, Any]) -> Application:
        application = Application.from_dict(item)
        application.mark_persisted()
        return application

    def save(self, application: Application) -> Application:
        try:
            self.table.put_item(Item=application.to_dict())
            application.mark_persisted()
            return application
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB save failed for {application.application_id}: {e}")
            raise

    def get(self, application_id: str) -> Optional[Application]:
        try:
            response = self.table.get_item(Key={"application_id": application_id})
            item = response.get("Item")
            if item is None:
                return None
            return self._load(item)
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB get failed for {application_id}: {e}")
            raise

    def delete(self, application_id: str) -> bool:
        try:
            response = self.table.delete_item(Key={"application_id": application_id}, ReturnValues="ALL_OLD")
            return "Attributes" in response
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB delete failed for {application_id}: {e}")
            raise

    def list_by_status(self, status: AppStatus, limit: int = 100) -> list[Application]:
        try:
            response = self.table.query(
                IndexName=self.STATUS_INDEX,
                KeyConditionExpression="#s = :status",
                ExpressionAttributeNames={"#s": "status"},
                ExpressionAttributeValues={":status": STATUS_CODES[AppStatus(status)]},
                Limit=limit,
                ScanIndexForward=False,
            )
            return [self._load(item) for item in response.get("Items", [])]
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB list_by_status failed: {e}")
            raise


class DynamoDBDeploymentStore(_DynamoDBTable):
    """
    DynamoDB-backed deployment store.

    Table schema:
        Partition key: application_id (S)
        Sort key: deployment_id (S)
    """

    def __init__(
        self,
        table_name: Optional[str] = None,
        region_name: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__(
            table_name or os.environ.get("APPSTATUS_DEPLOYMENTS_TABLE", "appstatus-deployments"),
            region_name,
            client,
        )

    def create(self, application_id: str, strategy: str) -> Deployment:
        deployment = Deployment(application_id=application_id, strategy=strategy)
        try:
            self.table.put_item(Item=deployment.model_dump(mode="json"))
            return deployment
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB deployment create failed for {application_id}: {e}")
            raise

    def list_for(self, application_id: str) -> list[Deployment]:
        try:
            kwargs: dict[str, Any] = {
                "KeyConditionExpression": "application_id = :app",
                "ExpressionAttributeValues": {":app": application_id},
            }
            deployments = []
            while True:
                response = self.table.query(**kwargs)
                deployments.extend(Deployment.model_validate(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return deployments
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB list_for failed for {application_id}: {e}")
            raise

    def destroy_all_for(self, application_id: str) -> int:
        deployments = self.list_for(application_id)
        try:
            with self.table.batch_writer() as batch:
                for deployment in deployments:
                    batch.delete_item(
                        Key={
                            "application_id": deployment.application_id,
                            "deployment_id": deployment.deployment_id,
                        }
                    )
            return len(deployments)
        except ClientError as e:
            logger.error(f"[appstatus] DynamoDB destroy_all_for failed for {application_id}: {e}")
            raise
