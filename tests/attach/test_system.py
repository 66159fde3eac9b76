import logging

import numpy as np
import pytest

from tessera.attach import (
    AttachmentPlugin,
    AttachmentSettings,
    AttachmentsResized,
    ContentDiscardError,
    DiscardPolicy,
    ImageStore,
    StoreExhaustedError,
    Viewport,
    resize_cascade_system,
)
from tessera.core.scheduler import Scheduler, Stage
from tessera.types import Extent3D
from tests.conftest import Canvas, GBuffer


def _store_state(images):
    state = {}
    for handle in images.handles():
        image = images.get(handle)
        data = None if image.data is None else image.data.tobytes()
        state[handle] = (image.descriptor, image.view_descriptor, data)
    return state


def _spawn(world, attachment, width, height):
    return world.create_entity(attachment, Viewport(width, height))


def test_first_pass_materializes_every_slot(world):
    gbuffer = GBuffer()
    _spawn(world, gbuffer, 320, 200)

    resize_cascade_system(GBuffer)(world)

    images = world.get_resource(ImageStore)
    assert len(images) == 3
    for slot, handle in zip(GBuffer.slots, gbuffer):
        image = images.get(handle)
        assert image.size == Extent3D(320, 200, 1)
        assert image.format is slot.format


def test_rerun_with_same_size_is_idempotent(world, images):
    world.add_resource(images)
    gbuffer = GBuffer()
    _spawn(world, gbuffer, 64, 64)
    system = resize_cascade_system(GBuffer)

    system(world)
    images.get(gbuffer.normal).materialize()[0, 0, 0, 0] = 1.5
    handles = list(gbuffer)
    state = _store_state(images)
    images.drain_changes()
    world.get_events(AttachmentsResized)

    system(world)

    assert list(gbuffer) == handles
    assert _store_state(images) == state
    assert not images.drain_changes()
    assert world.get_events(AttachmentsResized) == []


def test_viewport_change_resizes_and_keeps_handles(world, images):
    world.add_resource(images)
    gbuffer = GBuffer()
    eid = _spawn(world, gbuffer, 64, 64)
    system = resize_cascade_system(GBuffer)
    system(world)
    handles = list(gbuffer)

    world.mutate_component(eid, Viewport(128, 96))
    system(world)

    assert list(gbuffer) == handles
    assert all(images.get(h).size == Extent3D(128, 96) for h in gbuffer)


def test_content_preserved_across_resize(world, images):
    world.add_resource(images)
    canvas = Canvas()
    w, h = 16, 8
    eid = _spawn(world, canvas, w, h)
    system = resize_cascade_system(Canvas)
    system(world)

    pattern = np.arange((h // 2) * (w // 2) * 4, dtype=np.float32).reshape(
        h // 2, w // 2, 4
    )
    images.get(canvas.paint).materialize()[0, : h // 2, : w // 2] = pattern

    world.mutate_component(eid, Viewport(2 * w, 2 * h))
    system(world)

    data = images.get(canvas.paint).data
    assert data.shape == (1, 2 * h, 2 * w, 4)
    np.testing.assert_array_equal(data[0, : h // 2, : w // 2], pattern)


def test_discard_path_reports_new_size(world, images):
    world.add_resource(images)
    gbuffer = GBuffer()
    eid = _spawn(world, gbuffer, 10, 10)
    system = resize_cascade_system(GBuffer)
    system(world)

    world.mutate_component(eid, Viewport(33, 17))
    system(world)

    assert images.get(gbuffer.albedo).size == Extent3D(33, 17)
    assert images.get(gbuffer.depth).size == Extent3D(33, 17)


def test_discard_policy_comes_from_settings(world, images):
    world.add_resource(images)
    gbuffer = GBuffer()
    eid = _spawn(world, gbuffer, 10, 10)
    system = resize_cascade_system(GBuffer)
    system(world)
    images.get(gbuffer.albedo).materialize()
    world.mutate_component(eid, Viewport(20, 20))

    with pytest.raises(ContentDiscardError):
        system(world)

    world.add_resource(AttachmentSettings(discard_policy=DiscardPolicy.DROP))
    system(world)

    assert images.get(gbuffer.albedo).size == Extent3D(20, 20)
    assert images.get(gbuffer.albedo).data is None


def test_discard_error_leaves_every_slot_untouched(world, images):
    world.add_resource(images)
    gbuffer = GBuffer()
    eid = _spawn(world, gbuffer, 4, 4)
    system = resize_cascade_system(GBuffer)
    system(world)
    # Last slot carries data; the earlier ones would resize first
    images.get(gbuffer.depth).materialize()
    images.get(gbuffer.normal).materialize()
    state = _store_state(images)
    images.drain_changes()

    world.mutate_component(eid, Viewport(8, 8))
    with pytest.raises(ContentDiscardError, match="depth"):
        system(world)

    assert _store_state(images) == state
    assert all(images.get(h).size == Extent3D(4, 4) for h in gbuffer)
    assert not images.drain_changes()


def test_dangling_handle_recovered(world, images, caplog):
    world.add_resource(images)
    canvas = Canvas()
    _spawn(world, canvas, 12, 12)
    system = resize_cascade_system(Canvas)
    system(world)
    stale = canvas.paint

    images.remove(stale)
    with caplog.at_level(logging.WARNING):
        system(world)

    assert canvas.paint != stale
    assert images.get(canvas.paint).size == Extent3D(12, 12)
    assert "no image in the store" in caplog.text


def test_unsized_viewport_is_skipped(world, images):
    world.add_resource(images)
    canvas = Canvas()
    _spawn(world, canvas, 0, 0)

    resize_cascade_system(Canvas)(world)

    assert len(images) == 0
    assert canvas.paint.is_placeholder


@pytest.mark.parametrize(
    "viewport",
    [Viewport(0, 100), Viewport(100, 0), Viewport(10, 10, layers=0), Viewport(-1, 5)],
)
def test_invalid_size_skips_entity(world, images, caplog, viewport):
    world.add_resource(images)
    canvas = Canvas()
    world.create_entity(canvas, viewport)

    with caplog.at_level(logging.WARNING):
        resize_cascade_system(Canvas)(world)

    assert len(images) == 0
    assert canvas.paint.is_placeholder
    assert "skipping Canvas sync" in caplog.text


def test_invalid_size_keeps_previous_images(world, images):
    world.add_resource(images)
    canvas = Canvas()
    eid = _spawn(world, canvas, 8, 8)
    system = resize_cascade_system(Canvas)
    system(world)
    handle = canvas.paint

    world.mutate_component(eid, Viewport(8, 0))
    system(world)

    assert canvas.paint == handle
    assert images.get(handle).size == Extent3D(8, 8)


def test_only_entities_with_both_components_are_synced(world, images):
    world.add_resource(images)
    lonely = Canvas()
    world.create_entity(lonely)
    world.create_entity(Viewport(5, 5))
    paired = Canvas()
    _spawn(world, paired, 5, 5)

    resize_cascade_system(Canvas)(world)

    assert lonely.paint.is_placeholder
    assert not paired.paint.is_placeholder


def test_store_exhaustion_propagates(world):
    world.add_resource(ImageStore(capacity=2))
    _spawn(world, GBuffer(), 4, 4)

    with pytest.raises(StoreExhaustedError):
        resize_cascade_system(GBuffer)(world)


def test_store_created_from_settings(world):
    world.add_resource(AttachmentSettings(store_capacity=1))
    _spawn(world, Canvas(), 4, 4)

    resize_cascade_system(Canvas)(world)

    assert world.get_resource(ImageStore).capacity == 1


def test_disabled_settings_skip_everything(world, images):
    world.add_resource(images)
    world.add_resource(AttachmentSettings(enabled=False))
    canvas = Canvas()
    _spawn(world, canvas, 4, 4)

    resize_cascade_system(Canvas)(world)

    assert canvas.paint.is_placeholder


def test_resize_event_emitted_on_change(world):
    eid = _spawn(world, Canvas(), 4, 4)
    system = resize_cascade_system(Canvas)

    system(world)
    [event] = world.get_events(AttachmentsResized)

    assert event.entity == eid
    assert event.attachment_type is Canvas
    assert event.size == Extent3D(4, 4)


def test_plugin_registers_post_update_system(world):
    canvas = Canvas()
    _spawn(world, canvas, 6, 6)
    seen = []

    scheduler = Scheduler()
    AttachmentPlugin(Canvas).build(scheduler)
    scheduler.add_system(
        Stage.RENDER,
        lambda w: seen.append(w.get_resource(ImageStore).get(canvas.paint).size),
        name="consumer",
    )

    scheduler.tick(world)

    assert seen == [Extent3D(6, 6)]


def test_system_requires_concrete_attachment():
    from tessera.attach import CompositeAttachment

    with pytest.raises(TypeError):
        resize_cascade_system(CompositeAttachment)
