from tessera.core.registry import ComponentRegistry
from tests.conftest import Canvas, GBuffer, Size


def test_each_component_type_gets_its_own_bit():
    masks = [ComponentRegistry.get_mask(t) for t in (Canvas, GBuffer, Size)]

    for mask in masks:
        assert mask & (mask - 1) == 0

    assert masks[0] | masks[1] | masks[2] == masks[0] ^ masks[1] ^ masks[2]


def test_ids_are_stable():
    assert ComponentRegistry.get_id(Canvas) == ComponentRegistry.get_id(Canvas)
    assert ComponentRegistry.get_mask(GBuffer) == ComponentRegistry.get_mask(GBuffer)
