import numpy as np
import pytest

from tessera.attach import (
    PLACEHOLDER,
    ContentDiscardError,
    Handle,
    ImageStore,
    StoreExhaustedError,
)
from tessera.types import Extent3D
from tests.conftest import Canvas, GBuffer


def _image(slot=Canvas.paint, size=Extent3D(4, 4)):
    return slot.new_image(size)


def test_add_and_get(images):
    handle = images.add(_image())

    assert handle in images
    assert not handle.is_placeholder
    assert images.get(handle).size == Extent3D(4, 4)
    assert len(images) == 1


def test_placeholder_never_resolves(images):
    images.add(_image())

    assert PLACEHOLDER.is_placeholder
    assert images.get(PLACEHOLDER) is None
    assert PLACEHOLDER not in images


def test_handles_are_unique_and_comparable(images):
    a = images.add(_image())
    b = images.add(_image())

    assert a != b
    assert a < b
    assert Handle(a.id) == a
    assert {a, b} == set(images.handles())


def test_capacity_exhaustion_raises(images):
    store = ImageStore(capacity=1)
    store.add(_image())

    with pytest.raises(StoreExhaustedError):
        store.add(_image())


def test_resize_in_place_keeps_overlap():
    store = ImageStore()
    handle = store.add(_image(size=Extent3D(2, 2)))
    store.get(handle).materialize()[0, :, :, :] = 7.0

    store.resize_in_place(handle, Extent3D(4, 3))

    data = store.get(handle).data
    assert data.shape == (1, 3, 4, 4)
    assert np.all(data[0, :2, :2] == 7.0)
    assert np.all(data[0, 2:, :] == 0.0)
    assert store.get(handle).size == Extent3D(4, 3)


def test_resize_in_place_shrinks(images):
    handle = images.add(_image(size=Extent3D(4, 4)))
    images.get(handle).materialize()[0, 1, 1, 0] = 3.0

    images.resize_in_place(handle, Extent3D(2, 2))

    assert images.get(handle).data.shape == (1, 2, 2, 4)
    assert images.get(handle).data[0, 1, 1, 0] == 3.0


def test_set_size_descriptor_on_gpu_only_image(images):
    handle = images.add(_image(GBuffer.albedo))

    images.set_size_descriptor(handle, Extent3D(8, 6))

    image = images.get(handle)
    assert image.size == Extent3D(8, 6)
    assert image.data is None


def test_set_size_descriptor_refuses_to_corrupt_cpu_data(images):
    handle = images.add(_image(GBuffer.albedo))
    images.get(handle).materialize()

    with pytest.raises(ContentDiscardError):
        images.set_size_descriptor(handle, Extent3D(8, 6))

    assert images.get(handle).size == Extent3D(4, 4)


def test_set_size_descriptor_can_drop_cpu_data(images):
    handle = images.add(_image(GBuffer.albedo))
    images.get(handle).materialize()

    images.set_size_descriptor(handle, Extent3D(8, 6), drop_data=True)

    assert images.get(handle).data is None
    assert images.get(handle).size == Extent3D(8, 6)


def test_mutating_unknown_handle_raises(images):
    with pytest.raises(KeyError):
        images.resize_in_place(Handle(42), Extent3D(1, 1))
    with pytest.raises(KeyError):
        images.set_size_descriptor(PLACEHOLDER, Extent3D(1, 1))


def test_remove_and_collect(images):
    keep = images.add(_image())
    drop = images.add(_image())
    also_drop = images.add(_image())

    assert images.remove(drop) is not None
    assert images.remove(drop) is None

    freed = images.collect([keep])

    assert freed == [also_drop]
    assert list(images.handles()) == [keep]


def test_changes_are_tracked_and_drained(images):
    a = images.add(_image())
    b = images.add(_image())
    images.remove(b)

    changes = images.drain_changes()
    assert changes.changed == {a.id}
    assert changes.removed == {b.id}

    assert not images.drain_changes()

    images.resize_in_place(a, Extent3D(2, 2))
    assert images.drain_changes().changed == {a.id}
