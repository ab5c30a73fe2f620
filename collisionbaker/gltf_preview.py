"""Write the baked collision mesh as glTF for inspection in a viewer."""

from __future__ import annotations

import numpy
import pygltflib

from collisionbaker.meshshape import indexify

FLOAT = 5126
UNSIGNED_INT = 5125
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963
TRIANGLES = 4


def build_preview(triangles: numpy.ndarray, name: str = "collision") -> pygltflib.GLTF2:
    """Build a single-mesh glTF document from (T, 3, 3) world-space triangles."""
    vertices, indices = indexify(triangles)
    positions = numpy.ascontiguousarray(vertices, dtype=numpy.float32)
    index_data = numpy.ascontiguousarray(indices.reshape(-1), dtype=numpy.uint32)

    binary_data = bytearray()
    binary_data.extend(positions.tobytes())
    while len(binary_data) % 4:
        binary_data.append(0)
    index_offset = len(binary_data)
    binary_data.extend(index_data.tobytes())

    if len(positions):
        pos_min = positions.min(axis=0).tolist()
        pos_max = positions.max(axis=0).tolist()
    else:
        pos_min = pos_max = [0.0, 0.0, 0.0]

    gltf = pygltflib.GLTF2(
        asset=pygltflib.Asset(version="2.0", generator="collisionbaker"),
        scene=0,
        scenes=[pygltflib.Scene(nodes=[0])],
        nodes=[pygltflib.Node(name=name, mesh=0)],
        meshes=[pygltflib.Mesh(name=name, primitives=[
            pygltflib.Primitive(
                attributes=pygltflib.Attributes(POSITION=0),
                indices=1,
                mode=TRIANGLES,
            )
        ])],
        accessors=[
            pygltflib.Accessor(
                bufferView=0, byteOffset=0, componentType=FLOAT, count=len(positions),
                type="VEC3", min=pos_min, max=pos_max,
            ),
            pygltflib.Accessor(
                bufferView=1, byteOffset=0, componentType=UNSIGNED_INT, count=len(index_data),
                type="SCALAR",
            ),
        ],
        bufferViews=[
            pygltflib.BufferView(buffer=0, byteOffset=0, byteLength=positions.nbytes, target=ARRAY_BUFFER),
            pygltflib.BufferView(buffer=0, byteOffset=index_offset, byteLength=index_data.nbytes,
                                 target=ELEMENT_ARRAY_BUFFER),
        ],
        buffers=[pygltflib.Buffer(byteLength=len(binary_data))],
    )
    gltf.set_binary_blob(bytes(binary_data))
    return gltf


def write_preview(triangles: numpy.ndarray, path: str, name: str = "collision") -> None:
    gltf = build_preview(triangles, name=name)
    if path.lower().endswith(".gltf"):
        gltf.convert_buffers(pygltflib.BufferFormat.DATAURI)
    gltf.save(path)
