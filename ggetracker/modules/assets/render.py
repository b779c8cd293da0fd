"""
In-page rendering script for game asset images.

Loads the asset's sprite sheet with the game's own CreateJS loader, draws
the asset's main library symbol centred and scaled onto a canvas, and
returns the canvas as a PNG data URL (or null when the library has no
symbol named after the asset).
"""

RENDER_ASSET_SCRIPT = """
async ({ name, spritesheetUrl, width, height }) => {
  const canvas = document.createElement('canvas');
  canvas.width = width;
  canvas.height = height;
  canvas.id = 'canvas';
  document.body.append(canvas);

  const stage = new createjs.Stage(canvas);
  const loader = globalThis.AssetLoader;
  if (!loader) {
    throw new Error('AssetLoader not found');
  }

  await new Promise((resolve, reject) => {
    loader.maintainScriptOrder = true;
    loader.setCrossOrigin?.('anonymous');
    loader.on('complete', resolve);
    loader.on('error', (error) => reject(new Error('Loader error: ' + error)));
    loader.loadFile({
      id: name,
      type: 'spritesheet',
      src: spritesheetUrl,
      crossOrigin: 'anonymous',
    });
  });

  const library = globalThis.Library[name];
  const Symbol = library && library[name];
  if (!Symbol) {
    return null;
  }

  const building = new Symbol();
  stage.addChild(building);
  stage.update();

  const bounds = building.getBounds() || building.nominalBounds;
  if (!bounds) {
    throw new Error('Bounds not found');
  }

  const scale = Math.min(width / bounds.width, height / bounds.height);
  building.scaleX = building.scaleY = scale;
  building.regX = bounds.x + bounds.width / 2;
  building.regY = bounds.y + bounds.height / 2;
  building.x = width / 2;
  building.y = height / 2;
  stage.update();

  return canvas.toDataURL('image/png');
}
"""

FIRST_LIBRARY_NAME_SCRIPT = """
() => globalThis.Library ? (Object.keys(globalThis.Library)[0] ?? null) : null
"""
