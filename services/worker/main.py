"""
Worker entry point: reads the run input and runs the AlternativeTo spider
in a CrawlerProcess.

Usage: python main.py [input.json]
The input path may also come from the SCRAPER_INPUT environment variable.
"""
import os
import sys

from dotenv import load_dotenv
from scrapy.crawler import CrawlerProcess
from scrapy.utils.project import get_project_settings

# Add the worker directory to Python path so Scrapy can find the project
worker_dir = os.path.dirname(os.path.abspath(__file__))
if worker_dir not in sys.path:
    sys.path.insert(0, worker_dir)

from alternativeto_scraper.config import RunInput
from alternativeto_scraper.errors import InputError
from alternativeto_scraper.pipelines import STORAGE_ERRORS_STAT
from alternativeto_scraper.spiders.alternativeto_spider import AlternativeToSpider


def load_run_input(argv=None):
    """RunInput from the first CLI argument, SCRAPER_INPUT, or defaults."""
    argv = sys.argv[1:] if argv is None else argv
    input_path = argv[0] if argv else os.getenv('SCRAPER_INPUT')
    if input_path:
        print(f'Reading input from {input_path}')
        return RunInput.from_file(input_path)
    print('No input file given, using defaults')
    return RunInput.from_raw({})


def build_settings(run_input):
    """Project settings with the run's dataset id and proxy applied."""
    os.environ.setdefault('SCRAPY_SETTINGS_MODULE', 'alternativeto_scraper.settings')
    settings = get_project_settings()
    settings.set('RUN_INPUT', run_input.to_dict())
    settings.set('DATASET_ID', os.getenv('DATASET_ID') or settings.get('DATASET_ID'))
    if os.getenv('DATABASE_URL'):
        settings.set('DATABASE_URL', os.getenv('DATABASE_URL'))

    proxy_url = run_input.proxy_url
    if proxy_url:
        launch_options = dict(settings.getdict('PLAYWRIGHT_LAUNCH_OPTIONS'))
        launch_options['proxy'] = {'server': proxy_url}
        settings.set('PLAYWRIGHT_LAUNCH_OPTIONS', launch_options)
        print('Proxy enabled for browser sessions')
    else:
        print('Proxy not configured, running unproxied')
    return settings


def run(run_input):
    """Run one crawl and return the crawler stats."""
    settings = build_settings(run_input)
    process = CrawlerProcess(settings)
    crawler = process.create_crawler(AlternativeToSpider)
    process.crawl(crawler, run_input=run_input, dataset_id=settings.get('DATASET_ID'))
    process.start()
    return crawler.stats.get_stats()


def main(argv=None):
    load_dotenv()
    try:
        run_input = load_run_input(argv)
    except InputError as e:
        print(f'Invalid input: {e}')
        return 1

    print(f'Starting crawl of {len(run_input.start_urls)} start URL(s), '
          f'results_wanted={run_input.results_wanted}, max_pages={run_input.max_pages}')
    stats = run(run_input)

    print(f'Finished ({stats.get("finish_reason")}): '
          f'pushed={stats.get("alternativeto/pushed", 0)} '
          f'pages={stats.get("alternativeto/pages", 0)} '
          f'blocked={stats.get("alternativeto/blocked", 0)}')
    if stats.get(STORAGE_ERRORS_STAT):
        print(f'Storage failed {stats[STORAGE_ERRORS_STAT]} time(s), see the crawl log')
        return 1
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print('\nWorker stopped by user')
        sys.exit(0)
