#!/usr/bin/env python3
"""
Sprite Atlas - Command Line Interface

Detects the separate elements of a mostly transparent image (letters of a
word, a character, its props, effects), names them, and writes an atlas
descriptor that lets a renderer draw each element from the one shared image.

The alpha channel is thresholded into a mask, cleaned with morphological
filtering, and separated into regions with one of four strategies
(connected components, watershed, distance transform, projection profile).
"""

import logging
from pathlib import Path

import click
import cv2

from sprite_atlas.api import analyze_spritesheet
from sprite_atlas.atlas import ExportFormat, export_descriptor
from sprite_atlas.config import AnalysisConfig
from sprite_atlas.models import SeparationMethod
from sprite_atlas.morphology import MorphOp
from sprite_atlas.separation import SeparationOptions
from sprite_atlas.structuring import KernelShape, StructuringElement


@click.command(context_settings=dict(show_default=True))
@click.argument('input_path', type=click.Path(exists=True))
@click.argument('output_path', type=click.Path())
@click.option('--alpha-threshold', '-a', type=click.IntRange(0, 255), default=30,
              help='Minimum opacity for a pixel to count as foreground')
@click.option('--min-sprite-size', '-m', type=int, default=50,
              help='Minimum sprite size in pixels')
@click.option('--max-sprite-size', '-M', type=int, help='Maximum sprite size in pixels')
@click.option('--max-sprites', '-n', type=int, default=20, help='Keep at most this many (largest) sprites')
@click.option('--merge-distance', '-g', type=int, default=2,
              help='Gap in pixels bridged by the default kernel')
@click.option('--kernel-shape', type=click.Choice([s.value for s in KernelShape if s is not KernelShape.CUSTOM]),
              default=KernelShape.ELLIPSE.value, help='Structuring element shape')
@click.option('--kernel-size', '-k', type=int, help='Structuring element size (default: from merge distance)')
@click.option('--operation', '-o', 'operations', multiple=True,
              type=click.Choice([op.value for op in MorphOp]),
              help='Morphological operation, repeat for a sequence (default: open, close)')
@click.option('--no-filter', is_flag=True, help='Skip morphological filtering')
@click.option('--iterations', '-i', type=int, default=1, help='Iterations per morphological operation')
@click.option('--method', '-s', type=click.Choice([m.value for m in SeparationMethod]),
              default=SeparationMethod.CONNECTED_COMPONENTS.value, help='Separation strategy')
@click.option('--distance-ratio', type=float, default=0.7,
              help='Core threshold of the distance transform strategy')
@click.option('--peak-window', type=int, default=3, help='Window size for watershed seed detection')
@click.option('--min-seed-distance', type=float, default=2.0,
              help='Minimum distance from background of a watershed seed')
@click.option('--profile-window', type=int, default=3,
              help='Moving-average window of the projection strategy')
@click.option('--expected-word', '-w', help='Word spelled by the text sprites, used to name them')
@click.option('--expected-count', type=int, help='Expected number of sprites (confidence score only)')
@click.option('--format', '-f', 'fmt', type=click.Choice([f.value for f in ExportFormat]),
              default=ExportFormat.TEXTUREPACKER.value, help='Descriptor dialect')
@click.option('--image-name', help='Image reference in the descriptor (default: input file name)')
@click.option('--debug', '-d', is_flag=True, help='Save intermediate images and log progress')
def main(input_path: str, output_path: str, alpha_threshold: int, min_sprite_size: int,
         max_sprite_size: int | None, max_sprites: int, merge_distance: int, kernel_shape: str,
         kernel_size: int | None, operations: tuple[str, ...], no_filter: bool, iterations: int,
         method: str, distance_ratio: float, peak_window: int, min_seed_distance: float,
         profile_window: int, expected_word: str | None, expected_count: int | None,
         fmt: str, image_name: str | None, debug: bool) -> None:
    """Detect the sprites of an image and write an atlas descriptor.

    INPUT_PATH is the path to the input image file (PNG with alpha channel).

    OUTPUT_PATH is the path where the descriptor will be saved.

    Use --method watershed when elements touch through thin necks, and
    --method projection for text laid out in rows and columns.
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Load the image
    img = cv2.imread(input_path, cv2.IMREAD_UNCHANGED)
    if img is None:
        click.echo(f"Error: Could not load image from {input_path}", err=True)
        return
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    click.echo(f"Loaded image with shape {img.shape}")

    # Setup debug directory if needed
    debug_dir = None
    if debug:
        debug_dir = Path("debug")
        debug_dir.mkdir(exist_ok=True)
        click.echo("Debug mode enabled, saving intermediate images to 'debug' directory")

    try:
        shape = KernelShape(kernel_shape)
        element = StructuringElement(shape, kernel_size) if kernel_size is not None else \
            StructuringElement.from_merge_distance(merge_distance, shape)

        if no_filter:
            ops: tuple[MorphOp, ...] = ()
        elif operations:
            ops = tuple(MorphOp(op) for op in operations)
        else:
            ops = (MorphOp.OPEN, MorphOp.CLOSE)

        config = AnalysisConfig(
            alpha_threshold=alpha_threshold,
            min_sprite_size=min_sprite_size,
            max_sprite_size=max_sprite_size,
            max_sprites=max_sprites,
            merge_distance=merge_distance,
            structuring_element=element,
            operations=ops,
            iterations=iterations,
            separation_method=SeparationMethod(method),
            separation_options=SeparationOptions(
                distance_ratio=distance_ratio,
                peak_window=peak_window,
                min_seed_distance=min_seed_distance,
                profile_window=profile_window
            ),
            expected_count=expected_count,
        )

        result = analyze_spritesheet(
            img,
            config,
            image_name=image_name or Path(input_path).name,
            expected_symbols=expected_word,
            debug=debug
        )
    except ValueError as e:
        click.echo(f"Error processing image: {e}", err=True)
        return

    if debug_dir:
        for debug_img in result.debug_images:
            cv2.imwrite(str(debug_dir / f"{debug_img.name}.png"), debug_img.image)
        click.echo(f"Saved {len(result.debug_images)} debug image(s) to {debug_dir}")

    if not result.success:
        click.echo(f"Warning: {result.message}", err=True)
    else:
        click.echo(result.message)
        for sprite in result.sprites:
            box = sprite.bbox
            click.echo(f"  {sprite.name}: {sprite.sprite_type.value} at ({box.x}, {box.y}) "
                       f"{box.width}x{box.height}, {sprite.pixel_count} pixels")
    click.echo(f"Separation confidence: {result.confidence:.3f}")

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(export_descriptor(result.descriptor, fmt), encoding="utf-8")
    click.echo(f"Descriptor saved to {output}")


if __name__ == "__main__":
    main()
