"""
Resizable window demo for auto-sized attachments.

A persistent canvas attachment (content preserved on resize) is painted once
on the CPU and shown with a fullscreen blit. Resize the window and the
canvas follows the viewport while keeping what was painted.

Expected keys:
    - ESC: quit
    - V: toggle debug logging
"""

from __future__ import annotations

import argparse
import logging
import sys

import moderngl
import numpy as np
import pygame

from tessera.attach import (
    AttachmentPlugin,
    AttachmentSettings,
    AttachmentSlot,
    AttachmentsResized,
    CompositeAttachment,
    ImageStore,
    TextureAspect,
    TextureFormat,
    TextureUsages,
    Viewport,
)
from tessera.attach.gpu import GPUAttachmentSync
from tessera.core import Scheduler, Stage, World
from tessera.types import EntityId

logger = logging.getLogger("tessera.demo")

TARGET_USAGES = (
    TextureUsages.RENDER_ATTACHMENT
    | TextureUsages.TEXTURE_BINDING
    | TextureUsages.COPY_SRC
    | TextureUsages.COPY_DST
)


class DrawTargets(CompositeAttachment, length=2):
    canvas = AttachmentSlot(
        0, TextureFormat.RGBA32_FLOAT, TARGET_USAGES, copy_on_resize=True
    )
    depth = AttachmentSlot(
        1,
        TextureFormat.DEPTH32_FLOAT,
        TextureUsages.RENDER_ATTACHMENT,
        aspect=TextureAspect.DEPTH_ONLY,
    )


BLIT_VS = """
#version 330
out vec2 v_uv;
void main() {
    vec2 pos = vec2((gl_VertexID << 1) & 2, gl_VertexID & 2);
    v_uv = pos;
    gl_Position = vec4(pos * 2.0 - 1.0, 0.0, 1.0);
}
"""

BLIT_FS = """
#version 330
uniform sampler2D u_source;
in vec2 v_uv;
out vec4 f_color;
void main() {
    f_color = texture(u_source, v_uv);
}
"""


def paint_canvas(world: World, eid: EntityId) -> None:
    """Fills the canvas with a gradient the first time it exists."""
    targets = world.component(eid, DrawTargets)
    images = world.get_resource(ImageStore)
    image = images.get(targets.canvas)
    if image is None or image.data is not None:
        return

    data = image.materialize()
    _, h, w, _ = data.shape
    data[0, :, :, 0] = np.linspace(0.0, 1.0, w, dtype=np.float32)[None, :]
    data[0, :, :, 1] = np.linspace(0.0, 1.0, h, dtype=np.float32)[:, None]
    data[0, :, :, 3] = 1.0
    images.mark_changed(targets.canvas)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    pygame.init()
    pygame.display.set_mode(
        (args.width, args.height),
        pygame.OPENGL | pygame.DOUBLEBUF | pygame.RESIZABLE,
    )
    pygame.display.set_caption("Tessera")
    clock = pygame.time.Clock()

    ctx = moderngl.create_context()
    logger.info("OpenGL version %s", ctx.version_code)

    world = World()
    world.add_resource(AttachmentSettings())
    images = ImageStore()
    world.add_resource(images)

    eid = world.create_entity(DrawTargets(), Viewport(*pygame.display.get_window_size()))

    scheduler = Scheduler()
    AttachmentPlugin(DrawTargets).build(scheduler)
    scheduler.add_system(Stage.RENDER, lambda w: paint_canvas(w, eid), name="paint")

    gpu = GPUAttachmentSync(ctx, images)
    program = ctx.program(vertex_shader=BLIT_VS, fragment_shader=BLIT_FS)
    vao = ctx.vertex_array(program, [])

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                running = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_v:
                root = logging.getLogger()
                root.setLevel(
                    logging.INFO if root.level == logging.DEBUG else logging.DEBUG
                )
            elif event.type == pygame.WINDOWSIZECHANGED:
                world.mutate_component(eid, Viewport(event.x, event.y))

        scheduler.tick(world)
        for resized in world.get_events(AttachmentsResized):
            logger.info("Entity %d attachments now %s", resized.entity, resized.size)

        gpu.sync()

        ctx.screen.use()
        ctx.viewport = (0, 0, *pygame.display.get_window_size())
        ctx.clear(0.0, 0.0, 0.0, 1.0)

        canvas = gpu.texture(world.component(eid, DrawTargets).canvas)
        if canvas is not None:
            canvas.use(location=0)
            vao.render(moderngl.TRIANGLES, vertices=3)

        pygame.display.flip()
        clock.tick(60)

    gpu.release()
    pygame.quit()


if __name__ == "__main__":
    main()
