from __future__ import annotations

from vicoa_bridge.shared.path_utils import format_project_path


def test_home_itself(tmp_path):
    assert format_project_path(tmp_path, home=tmp_path.resolve()) == "~"


def test_under_home(tmp_path):
    project = tmp_path / "projects" / "app"
    project.mkdir(parents=True)
    assert format_project_path(project, home=tmp_path.resolve()) == "~/projects/app"


def test_outside_home(tmp_path):
    home = tmp_path / "home"
    other = tmp_path / "srv" / "app"
    assert format_project_path(other, home=home) == str(other.resolve())
