"""AWS Lambda handler for the scheduled event scan."""
import json
import logging
import sys
import time
from typing import Any, Dict, Optional

from processor.aggregator import EventAggregator
from processor.config import Settings
from processor.scan_orchestrator import ALL_STEPS, ScanOrchestrator
from scraper.ai_discovery import AIDiscoveryClient
from scraper.errors import ConfigurationMissingError, EventSourceError, RateLimitExhaustedError
from scraper.eventbrite import EventbriteClient
from scraper.seatgeek import SeatGeekClient
from scraper.ticketmaster import TicketmasterClient
from storage.dynamodb_manager import DynamoDBManager

# Attributes every LogRecord has; anything else came in through extra=
_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create new handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Set log level
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_orchestrator(settings: Settings) -> ScanOrchestrator:
    """Wire store and connectors from settings."""
    store = DynamoDBManager(
        events_table=settings.events_table,
        venues_table=settings.venues_table,
        cities_table=settings.cities_table,
        lease_table=settings.lease_table or None
    )
    ticketmaster = TicketmasterClient(
        api_key=settings.ticketmaster_api_key,
        timeout=settings.timeout_seconds,
        days_ahead=settings.days_ahead,
        page_size=settings.page_size,
        max_pages=settings.max_pages,
        page_delay=settings.page_delay_seconds
    )
    ai_client = AIDiscoveryClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        horizon_days=settings.ai_horizon_days,
        min_confidence=settings.ai_min_confidence,
        require_source_url=True
    )
    return ScanOrchestrator(
        store=store,
        ticketmaster=ticketmaster,
        ai_client=ai_client,
        max_pages=settings.max_pages,
        city_delay=settings.city_delay_seconds,
        archive_grace_days=settings.archive_grace_days,
        lease_seconds=settings.lease_seconds
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the event scan.

    Args:
        event: EventBridge event payload; optional "steps" list limits the run
        context: Lambda context object

    Returns:
        Response dict with statusCode and the run summary
    """
    settings = Settings.from_env()

    # Initialize logging
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    steps = (event or {}).get('steps') or ALL_STEPS
    if isinstance(steps, str):
        steps = [steps]
    unknown = [step for step in steps if step not in ALL_STEPS]
    if unknown:
        logger.error(f"Unknown scan steps requested: {unknown}")
        return {
            'statusCode': 400,
            'body': json.dumps({
                'message': 'Unknown scan steps',
                'unknown_steps': [str(step) for step in unknown],
                'valid_steps': list(ALL_STEPS)
            })
        }

    # Log Lambda execution start
    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'events_table': settings.events_table,
            'steps': list(steps),
            'days_ahead': settings.days_ahead
        }
    )

    try:
        orchestrator = build_orchestrator(settings)
        result = orchestrator.run(steps=steps)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Scan failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    summary = result.to_dict()
    summary['duration_seconds'] = round(duration, 2)

    if result.ok:
        logger.info("Lambda execution completed successfully", extra=summary)
        message = 'Scan completed successfully'
    else:
        for error in result.errors:
            logger.warning(f"Recorded error: {error}")
        logger.warning(
            f"Lambda execution completed with {len(result.errors)} errors",
            extra=summary
        )
        message = 'Scan completed with errors'

    return {
        'statusCode': 200 if result.ok else 500,
        'body': json.dumps({
            'message': message,
            'statistics': summary
        })
    }


def build_aggregator(settings: Settings) -> EventAggregator:
    """Wire the interactive aggregation path from settings."""
    connectors = [
        EventbriteClient(settings.eventbrite_api_key, timeout=settings.timeout_seconds,
                         days_ahead=settings.days_ahead),
        TicketmasterClient(settings.ticketmaster_api_key, timeout=settings.timeout_seconds,
                           days_ahead=settings.days_ahead),
        SeatGeekClient(settings.seatgeek_client_id, timeout=settings.timeout_seconds,
                       days_ahead=settings.days_ahead),
    ]
    ai_client = AIDiscoveryClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        horizon_days=settings.ai_horizon_days
    )
    return EventAggregator(
        connectors,
        ai_client=ai_client,
        deadline_seconds=settings.timeout_seconds * 1.5
    )


def aggregate_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Return the deduplicated events of one city.

    Payload: {"city": "Passau"}. Add "ai_only": true to run AI discovery
    directly, in which case rate limiting and provider failures are
    reported with their own status codes instead of an empty list.
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    city = (event or {}).get('city')
    if not city:
        return {'statusCode': 400, 'body': json.dumps({'message': 'city is required'})}

    if (event or {}).get('ai_only'):
        ai_client = AIDiscoveryClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            horizon_days=settings.ai_horizon_days
        )
        try:
            events = ai_client.discover(city)
        except RateLimitExhaustedError as e:
            logger.warning(f"AI discovery rate limited for '{city}': {e}")
            return {'statusCode': 429, 'body': json.dumps({
                'message': 'Rate limit reached, please try again in a minute'
            })}
        except ConfigurationMissingError as e:
            return {'statusCode': 503, 'body': json.dumps({'message': str(e)})}
        except EventSourceError as e:
            logger.warning(f"AI discovery failed for '{city}': {e}")
            return {'statusCode': 502, 'body': json.dumps({
                'message': 'AI discovery failed',
                'error': str(e)
            })}
    else:
        events = build_aggregator(settings).aggregate(city)

    return {
        'statusCode': 200,
        'body': json.dumps({
            'city': city,
            'events': [e.to_dict() for e in events]
        })
    }


def main(event: Optional[Dict[str, Any]] = None) -> int:
    """Run the scan from a scheduler; the return value is the exit code."""
    response = lambda_handler(event or {}, None)
    return 0 if response['statusCode'] == 200 else 1


if __name__ == '__main__':
    sys.exit(main())
