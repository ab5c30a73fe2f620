import textwrap

import pytest


BODY_SCENE = textwrap.dedent(
    """\
    [gd_scene load_steps=2 format=3 uid="uid://c4body"]

    [sub_resource type="ConcavePolygonShape3D" id="shape_a"]
    data = PackedVector3Array(0, 0, 0, 1, 0, 0, 0, 1, 0)

    [node name="Level" type="Node3D"]

    [node name="Body" type="CollisionShape3D" parent="."]
    transform = Transform3D(1, 0, 0, 0, 1, 0, 0, 0, 1, 5, 0, 0)
    shape = SubResource("shape_a")
    """
)


@pytest.fixture()
def body_scene():
    return BODY_SCENE


@pytest.fixture()
def body_scene_file(tmp_path):
    path = tmp_path / "body.tscn"
    path.write_text(BODY_SCENE, encoding="utf-8")
    return path
