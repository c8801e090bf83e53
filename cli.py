#!/usr/bin/env python3
"""
Command Line Interface for the Resell Pricing engine
"""

import click
import json
import logging
from resell_pricing import AnalysisResult
from resell_pricing.analysis import ResellAnalyzer
from resell_pricing.pricing_engine import get_pricing_summary
from resell_pricing.text_signals import classify_text_signals
from config import Config, create_sample_env

@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, verbose):
    """Resell Pricing - Identify, grade and price resale items"""
    ctx.ensure_object(dict)

    # Load configuration
    config = Config()
    ctx.obj['config'] = config

    # Setup logging
    log_level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    for missing in config.validate():
        logging.getLogger(__name__).debug(f"Not configured: {missing}")

def _echo_result(result: AnalysisResult, as_json: bool):
    """Print an analysis result"""
    if as_json:
        click.echo(json.dumps(result_to_dict(result), indent=2))
        return

    if not result.succeeded:
        click.echo(f"❌ {result.error}")
        return

    identification = result.identification
    click.echo(f"🔎 {identification.name} ({identification.method.value}, "
               f"confidence {identification.confidence:.0%})")
    if identification.category.value != 'other':
        click.echo(f"📦 Category: {identification.category.value}")
    click.echo(f"🏷️  Condition: {result.condition.grade.label} "
               f"(confidence {result.condition.confidence:.0%})")
    click.echo()
    click.echo(get_pricing_summary(result.pricing, result.snapshot, result.confidence))

    for note in result.notes:
        click.echo(f"⚠️  {note}")

def result_to_dict(result: AnalysisResult) -> dict:
    """Flatten an analysis result for JSON output"""
    data = {
        'item': result.identification.name,
        'brand': result.identification.brand,
        'category': result.identification.category.value,
        'identification_method': result.identification.method.value,
        'error': result.error,
        'notes': result.notes
    }
    if result.condition is not None:
        data['condition'] = result.condition.grade.label
    if result.pricing is not None:
        data.update({
            'recommended_price': result.pricing.recommended_price,
            'quick_sale_price': result.pricing.quick_sale_price,
            'max_profit_price': result.pricing.max_profit_price,
            'strategy': result.pricing.strategy.value,
            'quick_sale_net': result.pricing.quick_sale_net,
            'recommended_net': result.pricing.recommended_net,
            'max_profit_net': result.pricing.max_profit_net,
            'fees_total': result.pricing.fees.total if result.pricing.fees else None,
            'resale_potential': result.pricing.resale_potential,
            'justification': list(result.pricing.justification)
        })
    if result.snapshot is not None:
        data.update({
            'sold_count': result.snapshot.evidence_count,
            'average_price': result.snapshot.average_price,
            'trend': result.snapshot.trend.direction.value,
            'competition': result.snapshot.competition.value,
            'sources': list(result.snapshot.sources)
        })
    if result.confidence is not None:
        data['confidence'] = round(result.confidence.overall, 3)
        data['data_quality'] = result.confidence.data_quality.value
    return data

@cli.command()
@click.pass_context
def setup(ctx):
    """Initialize Resell Pricing configuration"""
    click.echo("🚀 Setting up Resell Pricing...")

    create_sample_env()

    click.echo("✅ Setup complete!")
    click.echo("📝 Please update .env file with your API credentials")

@cli.command()
@click.argument('images', nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option('--text', '-t', 'texts', multiple=True, help='Text read from tags or labels (repeatable)')
@click.option('--barcode', '-b', help='UPC/EAN barcode')
@click.option('--category', '-c', help='Category hint (e.g. sneakers, electronics)')
@click.option('--condition', help='Condition description (skips photo grading)')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a summary')
@click.pass_context
def analyze(ctx, images, texts, barcode, category, condition, as_json):
    """Identify, grade and price an item from photos, text and barcode"""
    config = ctx.obj['config']

    def show_progress(progress):
        if not as_json:
            click.echo(f"⏳ [{progress.current_step}/{progress.total_steps}] {progress.status}")

    analyzer = ResellAnalyzer(config=config, progress_callback=show_progress)
    result = analyzer.analyze(
        images=list(images),
        texts=list(texts),
        barcode=barcode,
        category_hint=category,
        condition_text=condition
    )

    _echo_result(result, as_json)
    if not result.succeeded:
        ctx.exit(1)

@cli.command()
@click.option('--brand', required=True, help='Brand name')
@click.option('--model', required=True, help='Model or product line')
@click.option('--size', default='', help='Size')
@click.option('--condition', help='Condition description (e.g. "new with tags")')
@click.option('--category', '-c', help='Category hint')
@click.option('--quick-sale-ratio', type=float, help='Quick-sale share of recommended price (0.85-0.90)')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a summary')
@click.pass_context
def price(ctx, brand, model, size, condition, category, quick_sale_ratio, as_json):
    """Price a known item from sold-listing data"""
    config = ctx.obj['config']

    if not as_json:
        click.echo(f"💰 Pricing {brand} {model} {size}".rstrip())

    try:
        analyzer = ResellAnalyzer(config=config, quick_sale_ratio=quick_sale_ratio)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--quick-sale-ratio')

    result = analyzer.price_item(brand, model, size, condition, category)

    _echo_result(result, as_json)
    if not result.succeeded:
        ctx.exit(1)

@cli.command()
@click.argument('texts', nargs=-1, required=True)
def classify(texts):
    """Show how text snippets are classified"""
    signals = classify_text_signals(texts)

    click.echo("🔤 Text Signals:")
    for bucket in ('brands', 'sizes', 'style_codes', 'barcodes', 'prices'):
        values = getattr(signals, bucket)
        click.echo(f"  {bucket:<12} {', '.join(values) if values else '-'}")

    brand_names = signals.brand_names()
    if brand_names:
        click.echo(f"  {'brand names':<12} {', '.join(brand_names)}")

if __name__ == '__main__':
    cli()
