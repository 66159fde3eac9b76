import numpy as np

from tessera.attach.image import (
    TextureFormat,
    TextureViewDimension,
    data_shape,
)
from tessera.types import Extent3D
from tests.conftest import GBuffer


def test_format_layouts():
    assert TextureFormat.RGBA8_UNORM.components == 4
    assert TextureFormat.RGBA8_UNORM.np_dtype == np.uint8
    assert TextureFormat.RGBA16_FLOAT.gl_dtype == "f2"
    assert TextureFormat.DEPTH32_FLOAT.is_depth
    assert not TextureFormat.R32_FLOAT.is_depth


def test_materialize_allocates_zeroed_content():
    image = GBuffer.normal.new_image(Extent3D(5, 3, 2))

    data = image.materialize()

    assert data.shape == data_shape(Extent3D(5, 3, 2), TextureFormat.RGBA16_FLOAT)
    assert data.shape == (2, 3, 5, 4)
    assert data.dtype == np.float16
    assert not data.any()
    assert image.materialize() is data


def test_set_size_updates_view_dimension():
    image = GBuffer.albedo.new_image(Extent3D(4, 4))
    assert image.view_descriptor.dimension is TextureViewDimension.D2

    image.set_size(Extent3D(4, 4, 6))

    assert image.size.layers == 6
    assert image.view_descriptor.dimension is TextureViewDimension.D2_ARRAY
