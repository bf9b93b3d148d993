import pytest

from image_assignment_server.app import create_app
from image_assignment_server.config import ServerConfig
from image_assignment_server.models import ImageObject, MasterList
from image_assignment_server.state_resolver import StateResolver
from image_assignment_server.storage import AssignmentStorage
from image_assignment_server.submission_recorder import SubmissionRecorder
from image_assignment_server.task_splitter import TaskSplitter


@pytest.fixture
def make_master():
    def _make(count, project_name="demo"):
        images = [ImageObject(url=f"https://example.com/img_{i:03d}.jpg") for i in range(count)]
        return MasterList(project_name=project_name, images=images)

    return _make


@pytest.fixture
def storage(tmp_path):
    return AssignmentStorage(tmp_path / "data")


@pytest.fixture
def resolver(storage):
    return StateResolver(storage)


@pytest.fixture
def splitter(storage):
    return TaskSplitter(storage)


@pytest.fixture
def recorder(storage, resolver):
    return SubmissionRecorder(storage, resolver)


@pytest.fixture
def app(tmp_path):
    app = create_app(ServerConfig(data_dir=tmp_path / "data"))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
