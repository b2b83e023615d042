import sys

from wasmbuild.pipeline.orchestrator import main

sys.exit(main())
