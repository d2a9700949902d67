import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / '.env')

errors = []
warnings = []

parser = argparse.ArgumentParser()
parser.add_argument('--strict', '-s', action='store_true', help='Convert warnings to failures')
parser.add_argument('--offline', action='store_true', help='Skip connectivity checks')
args = parser.parse_args()
STRICT = args.strict

required = {
    'server': ['ENVIRONMENT', 'HOST', 'PORT'],
    'openai': ['OPENAI_API_KEY', 'OPENAI_MODEL'],
}

def check_presence(cat, keys):
    for k in keys:
        if not os.getenv(k):
            errors.append(f"{cat}: Missing {k}")

for cat, keys in required.items():
    check_presence(cat, keys)

# Format checks
try:
    port = int(os.getenv('PORT', '0'))
    if port < 1 or port > 65535:
        errors.append('PORT must be integer between 1 and 65535')
except ValueError:
    errors.append('PORT must be an integer')

openai_key = os.getenv('OPENAI_API_KEY', '')
if openai_key and not openai_key.startswith('sk-'):
    warnings.append('OPENAI_API_KEY does not start with sk-; verify provider')

try:
    temperature = float(os.getenv('OPENAI_TEMPERATURE', '0.3'))
    if temperature < 0.0 or temperature > 2.0:
        errors.append('OPENAI_TEMPERATURE must be between 0.0 and 2.0')
except ValueError:
    errors.append('OPENAI_TEMPERATURE must be a float')

for name, default in (('OPENAI_TIMEOUT', '60'), ('WORD_SOURCE_TIMEOUT', '20')):
    try:
        if float(os.getenv(name, default)) <= 0:
            errors.append(f'{name} must be positive')
    except ValueError:
        errors.append(f'{name} must be a number')

backend = os.getenv('WORD_STORE_BACKEND', 'file').lower()
if backend not in ('file', 'redis', 'memory'):
    errors.append('WORD_STORE_BACKEND must be file|redis|memory')
if backend == 'memory':
    warnings.append('WORD_STORE_BACKEND=memory keeps words only until the process exits')

mode = os.getenv('WORD_SOURCE_MODE', 'text').lower()
if mode not in ('text', 'snapshot'):
    errors.append('WORD_SOURCE_MODE must be text|snapshot')

source_url = os.getenv('WORD_SOURCE_URL')
source_path = os.getenv('WORD_SOURCE_PATH')
if os.getenv('SYNC_ON_STARTUP', 'false').lower() in ('1', 'true', 'yes') and not (source_url or source_path):
    errors.append('SYNC_ON_STARTUP is set but neither WORD_SOURCE_URL nor WORD_SOURCE_PATH is')
if source_path and not Path(source_path).exists():
    warnings.append(f'WORD_SOURCE_PATH {source_path} does not exist yet; sync will treat it as empty')

# Store file check
if backend == 'file':
    store_path = Path(os.getenv('WORD_STORE_PATH', 'data/local_storage.json'))
    try:
        store_path.parent.mkdir(parents=True, exist_ok=True)
        if not os.access(store_path.parent, os.W_OK):
            errors.append(f'Word store directory not writable: {store_path.parent}')
        else:
            print(f'Word store: {store_path}')
    except Exception as e:
        errors.append(f'Failed to verify/create word store dir: {e}')

if not args.offline:
    # OpenAI check - use 1.x client API (OpenAI)
    if openai_key:
        try:
            from openai import OpenAI
            client = OpenAI(api_key=openai_key)
            client.models.list()
            print('OpenAI: API reachable')
        except Exception as e:
            warnings.append(f'OpenAI check failed: {e}')

    # Redis check (word store or task store)
    if backend == 'redis' or os.getenv('TASK_STORE_REDIS_ENABLED', 'false').lower() in ('1', 'true', 'yes'):
        try:
            import redis
            r = redis.Redis(host=os.getenv('REDIS_HOST', 'localhost'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None)
            if r.ping():
                print('Redis: OK')
        except Exception as e:
            msg = f'Redis check failed: {e}'
            if backend == 'redis':
                errors.append(msg)
            else:
                warnings.append(msg)

    if source_url:
        try:
            import requests
            resp = requests.get(source_url, timeout=10)
            if resp.status_code == 404:
                warnings.append('WORD_SOURCE_URL returned 404; sync will treat it as empty')
            elif not resp.ok:
                warnings.append(f'WORD_SOURCE_URL returned HTTP {resp.status_code}')
            else:
                print('Word source: reachable')
        except Exception as e:
            warnings.append(f'Word source check failed: {e}')

if errors:
    print('\nENV validation failed:')
    for e in errors:
        print(' -', e)
    sys.exit(1)

if warnings:
    print('\nWarnings:')
    for w in warnings:
        print(' -', w)
    if STRICT:
        print('\nStrict mode enabled: treating warnings as errors')
        sys.exit(1)

print('\nAll critical validations passed')
sys.exit(0)
