# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

__title__ = "databend-http-client"
__description__ = "Client for the Databend HTTP query API"
__url__ = "https://github.com/databendlabs/databend"
__version__ = "0.1.0"
__author__ = "Databend Team"
__author_email__ = "hi@databend.com"
__license__ = "Apache 2.0"
