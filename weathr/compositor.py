"""
Scene Compositor - Builds one frame from its layers.

Layers, back to front:
    1. sky backdrop (gradient, stars, sun/moon, clouds, lightning flash)
    2. static scenery (house, ground, tree, fence, mailbox, bush)
    3. particle field (precipitation, fog, leaves, chimney smoke, fireflies,
       splashes)
    4. airplanes
    5. HUD text

Each layer only writes the cells it covers, so everything below shows
through elsewhere. A fresh Scene is built every frame.
"""

from typing import Optional

from .backdrop import SkyBackdrop
from .daynight import SkyPalette
from .hud import HudText
from .scene import Scene, WorldScene
from .weather import ParticleSystem


class SceneCompositor:
    """Merges the layers into a Scene."""

    def __init__(self, backdrop: Optional[SkyBackdrop] = None):
        self.backdrop = backdrop or SkyBackdrop()

    def compose(self, sky: SkyPalette, world: WorldScene, particles: ParticleSystem,
                hud: Optional[HudText] = None) -> Scene:
        scene = Scene.blank(world.width, world.height)

        self.backdrop.draw(
            scene,
            sky,
            world.horizon_row,
            cloud_cover=particles.profile.cloud_cover,
            flash=particles.flash_active,
            bolt=particles.lightning.bolt,
            tick=particles.tick_count,
        )

        world.draw(scene)

        for particle in particles.particles:
            row, col = particle.cell
            scene.put(row, col, particle.glyph, particle.style)
        for splash in particles.splashes:
            scene.put(splash.row, splash.col, splash.glyph, splash.style)

        for plane in particles.airplanes.planes:
            for row, col, glyph, style in plane.cells():
                scene.put(row, col, glyph, style)

        if hud is not None:
            for i, (line, style) in enumerate(hud.lines):
                scene.put_text(hud.row + i, hud.col, line, style)

        return scene
