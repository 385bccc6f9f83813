"""Tests for the ApplicationService."""

import logging

import pytest

from appstatus.config import MappingConfigFetcher
from appstatus.deployments import MemoryDeploymentStore
from appstatus.errors import DeploymentConfigMissing, InvalidConfigError
from appstatus.repository import MemoryRepository
from appstatus.service import ApplicationService
from appstatus.states import AppStatus, StatusEvent, create_application

VALID = {"deployment": {"strategy": "kubernetes", "prerequisites": True}}

ACTIVE_REPO = {"repo_found": True, "is_archived": False, "merge_queue_id": "mq-1"}
NO_QUEUE_REPO = {"repo_found": True, "is_archived": False, "merge_queue_id": None}
ARCHIVED_REPO = {"repo_found": True, "is_archived": True, "merge_queue_id": "mq-1"}
MISSING_REPO = {"repo_found": False, "is_archived": False, "merge_queue_id": None}


class RecordingStatusLog:
    def __init__(self):
        self.records = []

    def record(self, application, previous, new, event):
        self.records.append((previous, new, event))


class RecordingNotifier:
    def __init__(self):
        self.names = []

    def notify(self, application_name):
        self.names.append(application_name)


class FailingFetcher:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def fetch(self, application):
        self.calls += 1
        raise self.exc


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def deployments():
    return MemoryDeploymentStore()


@pytest.fixture
def fetcher():
    return MappingConfigFetcher({"org/billing": VALID})


@pytest.fixture
def status_log():
    return RecordingStatusLog()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(repo, fetcher, deployments, notifier, status_log):
    return ApplicationService(
        repository=repo,
        config_fetcher=fetcher,
        deployments=deployments,
        notifier=notifier,
        status_log=status_log,
    )


def make_service(repo, fetcher, deployments, notifier, status_log):
    return ApplicationService(
        repository=repo,
        config_fetcher=fetcher,
        deployments=deployments,
        notifier=notifier,
        status_log=status_log,
    )


class TestApplicationService:
    def test_create_and_get(self, service):
        app = service.create(name="billing", repo="org/billing")
        assert app.persisted is True
        fetched = service.get(app.application_id)
        assert fetched is not None
        assert fetched.name == "billing"
        assert fetched.status == AppStatus.ACTIVE

    @pytest.mark.parametrize("start", list(AppStatus))
    def test_activate_from_any_state(self, service, start):
        app = create_application(name="billing")
        app.transition_to(start, StatusEvent.UPDATE_STATUS)
        result = service.activate(app)
        assert result.success is True
        assert app.status == AppStatus.ACTIVE

    @pytest.mark.parametrize("start", list(AppStatus))
    def test_inactivate_from_any_state(self, service, notifier, start):
        app = create_application(name="billing")
        app.transition_to(start, StatusEvent.UPDATE_STATUS)
        result = service.inactivate(app)
        assert result.success is True
        assert app.status == AppStatus.INACTIVE
        assert notifier.names == ["billing"]

    def test_update_status_active(self, service, repo):
        app = service.create(name="billing", repo="org/billing")
        app.transition_to(AppStatus.INACTIVE, StatusEvent.INACTIVATE)
        repo.save(app)

        result = service.update_status(app, ACTIVE_REPO)
        assert result.success is True
        assert result.previous_state == AppStatus.INACTIVE
        assert result.new_state == AppStatus.ACTIVE
        assert repo.get(app.application_id).status == AppStatus.ACTIVE

    @pytest.mark.parametrize("repo_status", [MISSING_REPO, {**MISSING_REPO, "is_archived": True}])
    def test_repo_not_found_regardless_of_config(self, service, repo_status):
        app = service.create(name="unknown")
        result = service.update_status(app, repo_status)
        assert result.new_state == AppStatus.REPO_NOT_FOUND

    def test_archived(self, service):
        app = service.create(name="billing", repo="org/billing", pipelines_enabled=False)
        assert service.update_status(app, ARCHIVED_REPO).new_state == AppStatus.ARCHIVED

    @pytest.mark.parametrize("repo_name", ["org/billing", "org/unconfigured"])
    def test_merge_queue_disabled_regardless_of_config(self, service, repo_name):
        app = service.create(name="billing", repo=repo_name)
        assert service.update_status(app, NO_QUEUE_REPO).new_state == AppStatus.MERGE_QUEUE_DISABLED

    def test_active_repo_with_invalid_config(self, repo, deployments, notifier, status_log):
        fetcher = MappingConfigFetcher({"org/billing": {"deployment": {"strategy": ""}}})
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")
        assert service.update_status(app, ACTIVE_REPO).new_state == AppStatus.INVALID_CONFIG_ERROR

    def test_config_not_found(self, service):
        app = service.create(name="billing", repo="org/other")
        assert service.update_status(app, ACTIVE_REPO).new_state == AppStatus.CONFIG_NOT_FOUND

    def test_repo_not_accessible(self, repo, deployments, notifier, status_log):
        fetcher = MappingConfigFetcher({"org/billing": VALID}, inaccessible=["org/billing"])
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")
        assert service.update_status(app, ACTIVE_REPO).new_state == AppStatus.REPO_NOT_ACCESSIBLE

    def test_not_allowed_inactivates_and_notifies(self, repo, deployments, notifier, status_log):
        fetcher = MappingConfigFetcher({"org/billing": VALID}, allowed=[])
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")
        result = service.update_status(app, ACTIVE_REPO)
        assert result.new_state == AppStatus.INACTIVE
        assert notifier.names == ["billing"]

    def test_config_failure_without_repo_status(self, service):
        app = service.create(name="billing", repo="org/other")
        assert service.update_status(app, None).new_state == AppStatus.CONFIG_NOT_FOUND

    def test_no_matching_guard_is_rejected(self, service, repo, status_log):
        app = service.create(name="billing", repo="org/billing")
        app.transition_to(AppStatus.ARCHIVED, StatusEvent.UPDATE_STATUS)
        repo.save(app)

        result = service.update_status(app, None)
        assert result.success is False
        assert "No transition" in result.error
        assert app.status == AppStatus.ARCHIVED
        assert status_log.records == []

    def test_repo_status_is_memoized_per_instance(self, service):
        app = service.create(name="billing", repo="org/billing")
        assert service.update_status(app, ARCHIVED_REPO).new_state == AppStatus.ARCHIVED
        assert service.update_status(app, ACTIVE_REPO).new_state == AppStatus.ARCHIVED

    def test_refresh_uses_a_fresh_instance(self, service):
        app = service.create(name="billing", repo="org/billing")
        assert service.refresh(app.application_id, ARCHIVED_REPO).new_state == AppStatus.ARCHIVED
        result = service.refresh(app.application_id, ACTIVE_REPO)
        assert result.previous_state == AppStatus.ARCHIVED
        assert result.new_state == AppStatus.ACTIVE

    def test_refresh_not_found(self, service):
        result = service.refresh("nonexistent", ACTIVE_REPO)
        assert result.success is False
        assert "not found" in result.error.lower()

    def test_unclassified_config_error_propagates(self, repo, deployments, notifier, status_log):
        fetcher = FailingFetcher(RuntimeError("backend down"))
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")

        with pytest.raises(RuntimeError, match="backend down"):
            service.update_status(app, ACTIVE_REPO)
        assert app.status == AppStatus.ACTIVE
        assert repo.get(app.application_id).status == AppStatus.ACTIVE
        assert status_log.records == []

    def test_config_failure_is_fetched_once(self, repo, deployments, notifier, status_log):
        fetcher = FailingFetcher(InvalidConfigError())
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")

        service.update_status(app, ACTIVE_REPO)
        service.update_status(app, ACTIVE_REPO)
        assert service.resolve_config(app).ok is False
        assert fetcher.calls == 1

    def test_repo_level_outcome_skips_config_fetch(self, repo, deployments, notifier, status_log):
        fetcher = FailingFetcher(RuntimeError("should not be called"))
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")
        assert service.update_status(app, MISSING_REPO).new_state == AppStatus.REPO_NOT_FOUND
        assert fetcher.calls == 0


class TestStatusLog:
    def test_change_is_logged_once(self, service, status_log):
        app = service.create(name="billing", repo="org/billing")
        service.update_status(app, ARCHIVED_REPO)
        assert status_log.records == [(AppStatus.ACTIVE, AppStatus.ARCHIVED, StatusEvent.UPDATE_STATUS)]

    def test_self_transition_is_not_logged(self, service, status_log):
        app = service.create(name="billing", repo="org/billing")
        result = service.activate(app)
        assert result.success is True
        assert result.changed is False
        assert status_log.records == []

    def test_unpersisted_instance_is_not_logged(self, service, status_log, repo):
        app = create_application(name="billing")
        result = service.inactivate(app)
        assert result.success is True
        assert status_log.records == []
        assert repo.get(app.application_id) is None

    def test_default_status_log_writes_to_logging(self, repo, fetcher, deployments, caplog):
        service = ApplicationService(repository=repo, config_fetcher=fetcher, deployments=deployments)
        app = service.create(name="billing", repo="org/billing")
        with caplog.at_level(logging.INFO, logger="appstatus"):
            service.update_status(app, ARCHIVED_REPO)
        assert "changing from active to archived (event: update_status)" in caplog.text

    def test_default_notifier_writes_to_logging(self, repo, fetcher, deployments, caplog):
        service = ApplicationService(repository=repo, config_fetcher=fetcher, deployments=deployments)
        app = service.create(name="billing", repo="org/billing")
        with caplog.at_level(logging.INFO, logger="appstatus"):
            service.inactivate(app)
        assert "notifying that billing is inactive" in caplog.text


class TestHooks:
    def test_hook_fires_on_transition(self, service):
        calls = []

        def my_hook(application, prev, new, event):
            calls.append((prev, new, event))

        service.add_hook(my_hook)
        app = service.create(name="billing", repo="org/billing")
        service.update_status(app, ARCHIVED_REPO)

        assert calls == [(AppStatus.ACTIVE, AppStatus.ARCHIVED, StatusEvent.UPDATE_STATUS)]

    def test_hook_not_fired_on_rejection(self, service):
        calls = []
        service.add_hook(lambda a, p, n, e: calls.append(1))
        app = service.create(name="billing", repo="org/billing")
        service.update_status(app, None)
        assert calls == []

    def test_notification_follows_status_log(self, repo, fetcher, deployments):
        order = []

        class Log:
            def record(self, application, previous, new, event):
                order.append("log")

        class Notify:
            def notify(self, application_name):
                order.append("notify")

        service = ApplicationService(
            repository=repo,
            config_fetcher=fetcher,
            deployments=deployments,
            notifier=Notify(),
            status_log=Log(),
        )
        app = service.create(name="billing")
        service.inactivate(app)
        assert order == ["log", "notify"]

    def test_notifier_error_doesnt_break_transition(self, repo, fetcher, deployments, status_log):
        class BrokenNotifier:
            def notify(self, application_name):
                raise RuntimeError("smtp exploded")

        service = make_service(repo, fetcher, deployments, BrokenNotifier(), status_log)
        app = service.create(name="billing")
        result = service.inactivate(app)
        assert result.success is True
        assert repo.get(app.application_id).status == AppStatus.INACTIVE

    def test_hook_error_doesnt_break_transition(self, service):
        def bad_hook(application, prev, new, event):
            raise RuntimeError("hook exploded")

        service.add_hook(bad_hook)
        app = service.create(name="billing")
        result = service.inactivate(app)
        assert result.success is True


class TestDeployments:
    def test_create_deployment_uses_resolved_strategy(self, service, deployments):
        app = service.create(name="billing", repo="org/billing")
        assert service.resolve_config(app).ok
        deployment = service.create_deployment(app)
        assert deployment.application_id == app.application_id
        assert deployment.strategy == "kubernetes"
        assert [d.deployment_id for d in deployments.list_for(app.application_id)] == [deployment.deployment_id]

    def test_create_deployment_after_active_update(self, service):
        app = service.create(name="billing", repo="org/billing")
        service.update_status(app, ACTIVE_REPO)
        assert service.create_deployment(app).strategy == "kubernetes"

    def test_create_deployment_without_config(self, service):
        app = service.create(name="billing", repo="org/billing")
        with pytest.raises(DeploymentConfigMissing):
            service.create_deployment(app)

    def test_create_deployment_after_failed_resolution(self, service):
        app = service.create(name="billing", repo="org/other")
        service.resolve_config(app)
        with pytest.raises(DeploymentConfigMissing):
            service.create_deployment(app)

    def test_remove_destroys_deployments_first(self, service, deployments, repo):
        app = service.create(name="billing", repo="org/billing")
        other = service.create(name="search", repo="org/billing")
        service.resolve_config(app)
        service.resolve_config(other)
        for _ in range(3):
            service.create_deployment(app)
        service.create_deployment(other)

        assert service.remove(app.application_id) is True
        assert deployments.list_for(app.application_id) == []
        assert len(deployments.list_for(other.application_id)) == 1
        assert repo.get(app.application_id) is None

    def test_remove_nonexistent(self, service):
        assert service.remove("nope") is False


class TestMemoryRepository:
    def test_list_by_status(self, repo, service):
        service.create(name="a", repo="org/billing")
        b = service.create(name="b", repo="org/billing")
        service.update_status(b, ARCHIVED_REPO)

        active = repo.list_by_status(AppStatus.ACTIVE)
        archived = repo.list_by_status("archived")
        assert len(active) == 1
        assert len(archived) == 1
        assert archived[0].persisted is True

    def test_get_returns_fresh_instance(self, repo, service):
        app = service.create(name="a")
        assert repo.get(app.application_id) is not app

    def test_delete(self, repo, service):
        app = service.create(name="a")
        assert repo.delete(app.application_id) is True
        assert repo.get(app.application_id) is None

    def test_delete_nonexistent(self, repo):
        assert repo.delete("nope") is False


class TestSaveFailure:
    def test_failed_save_leaves_status_untouched(self, fetcher, deployments, notifier, status_log):
        class BrokenRepository(MemoryRepository):
            def __init__(self):
                super().__init__()
                self.broken = False

            def save(self, application):
                if self.broken:
                    raise RuntimeError("store unavailable")
                return super().save(application)

        repo = BrokenRepository()
        service = make_service(repo, fetcher, deployments, notifier, status_log)
        app = service.create(name="billing", repo="org/billing")
        updated_at = app.updated_at
        repo.broken = True

        with pytest.raises(RuntimeError, match="store unavailable"):
            service.inactivate(app)

        assert app.status == AppStatus.ACTIVE
        assert app.transitions == []
        assert app.updated_at == updated_at
        assert repo.get(app.application_id).status == AppStatus.ACTIVE
        assert status_log.records == []
        assert notifier.names == []
