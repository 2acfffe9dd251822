"""Volume, attachment, snapshot and resize operations, EC2 access, errors, waiting and metrics."""