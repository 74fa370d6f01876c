import sys

from syllabus_client.cli import main

sys.exit(main())
