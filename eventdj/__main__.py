import sys

from eventdj.app.main import main

sys.exit(main())
